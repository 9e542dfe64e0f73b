"""Function signature table: which call arguments are passed by reference.

Three sources are merged, highest priority first:

    1. functions and methods declared in the analyzed file
    2. signatures from the configuration
    3. the builtin table of PHP internal functions

Keys are call names as produced by the call-name resolver: `foo`,
`Foo::bar`, or `?::bar` for a method of an unknown class.
"""

import re
import threading
from collections import ChainMap
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from varaudit.parsers import PhpFile
from varaudit.utils.logging import logger

from . import php_builtins

# variadic by-reference parameters are expanded up to this position
MAX_VARIADIC_POSITION = 10


@dataclass(frozen=True)
class FunctionSignature:
    """By-reference argument positions of one callable.

    ref_positions is None for a callable without reference parameters.
    does_not_initialize marks callables whose reference arguments must
    already hold a value (sort, array_push, ...).
    """

    name: str
    ref_positions: frozenset[int] | None = None
    does_not_initialize: bool = False


_builtin_signatures: Mapping[str, FunctionSignature] | None = None
_builtin_lock = threading.Lock()


def _build_builtin_signatures() -> dict[str, FunctionSignature]:
    positions: dict[str, tuple[int, ...] | None] = dict.fromkeys(
        php_builtins.FUNCTIONS_WITHOUT_REFERENCES
    )
    positions.update(php_builtins.FUNCTIONS_WITH_REFERENCES)
    positions.update(php_builtins.OVERRIDES)

    table = {}
    for name, refs in positions.items():
        table[name] = FunctionSignature(
            name,
            frozenset(refs) if refs else None,
            name in php_builtins.DOES_NOT_INITIALIZE,
        )
    return table


def get_builtin_signatures() -> Mapping[str, FunctionSignature]:
    """Builtin table, assembled on first use and shared read-only afterwards."""
    global _builtin_signatures
    if _builtin_signatures is None:
        with _builtin_lock:
            if _builtin_signatures is None:
                table = _build_builtin_signatures()
                logger.debug("Builtin signature table built: {count} functions", count=len(table))
                _builtin_signatures = MappingProxyType(table)
    return _builtin_signatures


def parse_init_by_reference(text: str) -> FunctionSignature:
    """Parse 'name, pos, pos...' (zero-based positions)."""
    parts = [part.strip() for part in text.split(",")]
    name = parts[0]
    if not name:
        raise ValueError(f"Invalid signature '{text}': missing function name")
    try:
        refs = frozenset(int(part) for part in parts[1:] if part)
    except ValueError:
        raise ValueError(f"Invalid signature '{text}': positions must be integers") from None
    return FunctionSignature(name, refs or None)


_PROTOTYPE_RE = re.compile(
    r"^\s*(?P<name>(?:\?|\\?[A-Za-z_][\w\\]*)::[A-Za-z_]\w*|\\?[A-Za-z_][\w\\]*)"
    r"\s*\((?P<args>.*)\)\s*;?\s*$",
    re.S,
)


def parse_function_prototype(text: str) -> FunctionSignature:
    """Parse a PHP-like prototype: 'foo(&$x)', 'Foo::bar($a, &$b)', '?::qux(&...$rest)'."""
    m = _PROTOTYPE_RE.match(text)
    if m is None:
        raise ValueError(f"Invalid function prototype '{text}'")

    # call sites are resolved by unqualified names: \Foo\Bar::baz -> Bar::baz
    name = "::".join(part.rsplit("\\", 1)[-1] for part in m.group("name").split("::"))
    args = m.group("args").strip()
    refs = set()
    if args:
        for pos, arg in enumerate(args.split(",")):
            dollar = arg.find("$")
            marker = arg[:dollar] if dollar >= 0 else arg
            if "&" not in marker:
                continue
            if "..." in marker:
                refs.update(range(pos, MAX_VARIADIC_POSITION))
            else:
                refs.add(pos)
    return FunctionSignature(name, frozenset(refs) or None)


def parse_signature(text: str) -> FunctionSignature:
    """Either form: prototype when the text has a parameter list, else 'name, pos...'."""
    if "(" in text:
        return parse_function_prototype(text)
    return parse_init_by_reference(text)


def build_configured_signatures(
    init_by_reference: Iterable[str] = (),
    function_signatures: Iterable[str] = (),
) -> dict[str, FunctionSignature]:
    table = {}
    for text in init_by_reference:
        sig = parse_init_by_reference(text)
        table[sig.name] = sig
    for text in function_signatures:
        sig = parse_signature(text)
        table[sig.name] = sig
    return table


def collect_file_signatures(pf: PhpFile) -> dict[str, FunctionSignature]:
    """Signatures of the named functions and methods declared in pf.

    Constructors are left out, their call syntax differs from the
    declaration. Methods of anonymous classes can't be named by a call site.
    """
    table = {}
    for method in pf.methods:
        if method.name.lower() == "__construct":
            continue
        cls = pf.class_at(method.keyword_index)
        if cls is not None and cls.name is None:
            continue
        key = f"{method.class_name}::{method.name}" if method.class_name else method.name

        refs = set()
        for pos, first in enumerate(pf.extract_list(method.params_start + 1)):
            param = pf.parameter_at(first)
            if not param.is_ref:
                continue
            if param.is_variadic:
                refs.update(range(pos, MAX_VARIADIC_POSITION))
            else:
                refs.add(pos)
        table[key] = FunctionSignature(key, frozenset(refs) or None)
    return table


class SignatureTable:
    """Prioritized view over file-local, configured and builtin signatures."""

    def __init__(
        self,
        file_local: Mapping[str, FunctionSignature] | None = None,
        configured: Mapping[str, FunctionSignature] | None = None,
        builtin: Mapping[str, FunctionSignature] | None = None,
    ):
        if builtin is None:
            builtin = get_builtin_signatures()
        self._layers = ChainMap(dict(file_local or {}), dict(configured or {}), builtin)

    def lookup(self, candidates: Iterable[str]) -> FunctionSignature | None:
        """First signature matching one of the candidate names, in candidate order."""
        for name in candidates:
            sig = self._layers.get(name)
            if sig is not None:
                return sig
        return None
