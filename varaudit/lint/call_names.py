"""Call-name resolution for signature lookup.

    bar()               -> ["bar"]
    Foo::bar()          -> ["Foo::bar", "?::bar"]
    self::bar()         -> ["Foo::bar", "?::bar"] inside class Foo, else ["?::bar"]
    parent::bar()       -> ["?::bar"]
    $this->bar()        -> ["Foo::bar", "?::bar"] inside class Foo, else ["?::bar"]
    $x->bar()           -> ["Type::bar", "?::bar"] if $x is annotated `@var Type`
    $x->y->bar()        -> ["?::bar"]

Method calls never fall back to the bare name: `$x->sort($a)` is not the
internal sort().
"""

from varaudit.parsers import PhpFile, Token, TokenKind

from .scopes import Scope

_OBJECT_OPERATORS = (TokenKind.OBJECT_OPERATOR, TokenKind.NULLSAFE_OBJECT_OPERATOR)
_MEMBER_ACCESS = (*_OBJECT_OPERATORS, TokenKind.DOUBLE_COLON)


def short_class_name(name: str) -> str:
    """Last segment of a namespaced class name: \\Foo\\Bar -> Bar."""
    return name.rsplit("\\", 1)[-1]


def _class_name_at(pf: PhpFile, index: int) -> str | None:
    cls = pf.class_at(index)
    return cls.name if cls is not None else None


def resolve_call_name(pf: PhpFile, token: Token, scope: Scope) -> list[str]:
    """Candidate signature keys for the call whose name token is `token`, in lookup order."""
    name = token.text
    wildcard = f"?::{name}"

    prev = pf.prev_ns(token.index)
    if prev is None:
        return [name]

    if prev.kind in _OBJECT_OPERATORS:
        receiver = pf.prev_ns(prev.index)
        if receiver is None or receiver.kind is not TokenKind.VARIABLE:
            return [wildcard]
        before = pf.prev_ns(receiver.index)
        if before is not None and before.kind in _MEMBER_ACCESS:
            # $x->y->$z->bar(), Foo::$x->bar()
            return [wildcard]
        if receiver.text == "$this":
            cls = _class_name_at(pf, token.index)
            return [f"{cls}::{name}", wildcard] if cls else [wildcard]
        annotated = scope.var_types.get(receiver.text)
        if annotated:
            return [f"{short_class_name(annotated)}::{name}", wildcard]
        return [wildcard]

    if prev.kind is TokenKind.DOUBLE_COLON:
        qualifier = pf.prev_ns(prev.index)
        if qualifier is None or qualifier.kind not in (TokenKind.STRING, TokenKind.STATIC):
            # $class::bar()
            return [wildcard]
        lowered = qualifier.text.lower()
        if lowered in ("self", "static"):
            cls = _class_name_at(pf, token.index)
            return [f"{cls}::{name}", wildcard] if cls else [wildcard]
        if lowered == "parent":
            return [wildcard]
        return [f"{qualifier.text}::{name}", wildcard]

    return [name]
