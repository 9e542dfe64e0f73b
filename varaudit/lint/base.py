"""Base contracts for lint analyzers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from varaudit.parsers import FileType, PhpFile, Token


class Severity(IntEnum):
    """Defect severity levels, ordered NOTICE < WARNING < ERROR."""

    NOTICE = 1
    WARNING = 2
    ERROR = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_name(cls, name: str) -> "Severity":
        """Accept 'error', 'errors', 'warning', 'warnings', 'notice', 'notices'."""
        key = name.strip().lower()
        if key.endswith("s"):
            key = key[:-1]
        try:
            return cls[key.upper()]
        except KeyError:
            raise ValueError(f"unknown error reporting level: {name}") from None


# Message catalogue shared with report consumers; keep the text stable.
MSG_UNDEFINED = "Use of non-defined variable"
MSG_POSSIBLY_UNDEFINED = "Possible use of non-defined variable"
MSG_ARRAY_AUTOVIVIFICATION = "Array autovivification"
MSG_SCALAR_AUTOVIVIFICATION = "Scalar autovivification"
MSG_EMPTY_DECLARATION = "Empty declaration-like statement"
MSG_RELAXED_MODE = "Can't reliable detect var usage from here"
MSG_NON_VARIABLE_BY_REF = "Possible attemps to pass non-variable by reference"
MSG_VALUE_NOT_USED = "Value of variable is not used"


@dataclass(frozen=True)
class CodeDefect:
    """A single reported problem, attached to the token it was found at."""

    token: Token
    severity: Severity
    message: str

    @property
    def line(self) -> int:
        return self.token.line

    @property
    def token_text(self) -> str:
        return self.token.text

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "line": self.line,
            "severity": self.severity.label,
            "message": self.message,
            "token": self.token_text,
        }


class LintPlugin(ABC):
    """Capability interface shared by every analyzer in the registry."""

    report_id: str = ""
    report_name: str = ""
    supported_file_type: FileType = FileType.PHP

    def __init__(self):
        self.report_level = Severity.WARNING

    def set_report_level(self, level: Severity) -> None:
        self.report_level = level

    def supports(self, pf: PhpFile) -> bool:
        return pf.file_type is self.supported_file_type

    @abstractmethod
    def get_report(self, pf: PhpFile) -> list[CodeDefect]:
        """Analyze one parsed file; defects below the report level are dropped."""
