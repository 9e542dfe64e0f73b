"""Exceptions raised when a file cannot be analyzed.

Defects are regular output and never raised. The classes below signal that a
file is internally inconsistent (unknown token sequence where a construct was
expected, unbalanced brackets, unbalanced scopes); they abort the analysis of
that one file.
"""


class AnalysisError(Exception):
    """Raised when a known construct is followed by an unexpected token sequence.

    Attributes:
        message: Human-readable error description
        token: Offending token, if any
        details: Dict with extra context for debugging
    """

    def __init__(self, message: str, token=None, details: dict | None = None):
        if token is not None:
            message = f"{message} (line {token.line}: {token.text!r})"
        super().__init__(message)
        self.token = token
        self.details = details or {}


class ParseError(AnalysisError):
    """Raised when source text cannot be tokenized or its brackets don't pair up."""
