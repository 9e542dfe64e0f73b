"""Extraction of `@var` annotations from doc comments."""

import re

_VAR_ANNOTATION_RE = re.compile(
    r"@var\s+(?:(?P<type>[^\s$*][^\s$]*)\s+)?"
    r"(?P<names>\$[A-Za-z_\x80-\uffff][\w\x80-\uffff]*(?:\s*,\s*\$[A-Za-z_\x80-\uffff][\w\x80-\uffff]*)*)"
)
_NAME_RE = re.compile(r"\$[A-Za-z_\x80-\uffff][\w\x80-\uffff]*")


def parse_doc_comment(text: str) -> dict[str, str | None]:
    """Variable names declared by `@var` tags, mapped to their declared type.

        /**
         * @var Foo $a, $b
         * @var $c
         * @var Bar          <- property-style annotation, no variable: ignored
         */

    yields {"$a": "Foo", "$b": "Foo", "$c": None}.
    """
    declared: dict[str, str | None] = {}
    for m in _VAR_ANNOTATION_RE.finditer(text):
        type_name = m.group("type")
        for name in _NAME_RE.findall(m.group("names")):
            declared[name] = type_name
    return declared
