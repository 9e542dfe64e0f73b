"""Parsed PHP file: immutable token sequence plus precomputed navigation maps.

Every navigation helper the analyzers need is answered from arrays built once
at construction time:

    next_ns / prev_ns     nearest significant token (whitespace and comments skipped)
    paired_bracket        matching bracket for (), [], {}, {$...}, ${...}, #[...]
    class_at / method_at  innermost enclosing class body / function declaration

Tokens are never mutated; analyzers walk the sequence by index.
"""

from dataclasses import dataclass
from enum import Enum

from varaudit.exceptions import ParseError
from varaudit.utils.logging import logger

from .php_tokens import Token, TokenKind, tokenize

_CLOSER_FOR = {"(": ")", "[": "]", "{": "}", "{$": "}", "${": "}", "#[": "]"}

_CLASS_KINDS = frozenset({TokenKind.CLASS, TokenKind.INTERFACE, TokenKind.TRAIT})


class FileType(Enum):
    """Source file types analyzers can declare support for."""

    PHP = "php"


@dataclass(frozen=True)
class ClassInfo:
    """A class, interface or trait body. Anonymous classes have no name."""

    name: str | None
    keyword_index: int
    body_start: int
    body_end: int


@dataclass(frozen=True)
class MethodInfo:
    """A function, method or closure declaration.

    The declaration spans from the `function` keyword to the closing brace of
    its body (or the `;` of a body-less declaration).
    """

    name: str | None
    class_name: str | None
    keyword_index: int
    name_index: int | None
    params_start: int
    body_start: int | None
    end_index: int


@dataclass(frozen=True)
class Parameter:
    """One entry of a function's parameter list: `#[A] public ?Foo &...$name = 1`."""

    variable: Token | None
    is_ref: bool
    is_variadic: bool


# tokens that may appear in a parameter's modifiers or type declaration
_PARAM_PREFIX_KINDS = frozenset(
    {
        TokenKind.STRING,
        TokenKind.NS_SEPARATOR,
        TokenKind.ARRAY,
        TokenKind.CALLABLE,
        TokenKind.STATIC,
        TokenKind.PUBLIC,
        TokenKind.PROTECTED,
        TokenKind.PRIVATE,
        TokenKind.READONLY,
    }
)


class PhpFile:
    """Token stream provider for one PHP source file."""

    file_type = FileType.PHP

    def __init__(self, filename: str, source: str):
        self.filename = filename
        self.tokens: tuple[Token, ...] = tuple(tokenize(source))

        self._next_sig, self._prev_sig = self._build_significant_maps()
        self._pairs = self._build_bracket_map()
        self.classes: tuple[ClassInfo, ...] = tuple(self._find_classes())
        self._class_at = self._build_interval_map(
            [(c.body_start, c.body_end) for c in self.classes]
        )
        self.functions: tuple[MethodInfo, ...] = tuple(self._find_functions())
        self._method_at = self._build_interval_map(
            [(f.keyword_index, f.end_index) for f in self.functions]
        )

        logger.debug(
            "Parsed {file}: {tokens} tokens, {classes} classes, {functions} functions",
            file=filename,
            tokens=len(self.tokens),
            classes=len(self.classes),
            functions=len(self.functions),
        )

    @property
    def methods(self) -> list[MethodInfo]:
        """Named functions and methods, in source order."""
        return [f for f in self.functions if f.name is not None]

    # ------------------------------------------------------------------
    # navigation
    # ------------------------------------------------------------------

    def next_ns(self, index: int) -> Token | None:
        """Nearest significant token after index."""
        nxt = self._next_sig[index]
        return self.tokens[nxt] if nxt >= 0 else None

    def prev_ns(self, index: int) -> Token | None:
        """Nearest significant token before index."""
        prev = self._prev_sig[index]
        return self.tokens[prev] if prev >= 0 else None

    def paired_bracket(self, index: int) -> int:
        """Index of the bracket matching the one at index."""
        try:
            return self._pairs[index]
        except KeyError:
            raise ParseError("Not a bracket", self.tokens[index]) from None

    def is_opening_bracket(self, index: int) -> bool:
        pair = self._pairs.get(index)
        return pair is not None and pair > index

    def class_at(self, index: int) -> ClassInfo | None:
        """Innermost class body containing the token at index."""
        pos = self._class_at[index]
        return self.classes[pos] if pos >= 0 else None

    def method_at(self, index: int) -> MethodInfo | None:
        """Innermost function declaration containing the token at index."""
        pos = self._method_at[index]
        return self.functions[pos] if pos >= 0 else None

    def extract_list(
        self,
        index: int,
        separators: tuple[str, ...] = (",",),
        terminators: tuple[str, ...] = (")",),
    ) -> list[Token]:
        """First significant token of every element of a delimited list.

        The list starts at the token at index (e.g. the token right after an
        opening parenthesis) and ends at the first terminator outside nested
        brackets. An empty list yields no elements.
        """
        result: list[Token] = []
        token = self.tokens[index]
        if token.is_trivial:
            token = self.next_ns(index)

        expect_element = True
        while token is not None:
            if token.kind is TokenKind.CLOSE_TAG or token.is_char(*terminators):
                break
            if token.is_char(*separators):
                expect_element = True
                token = self.next_ns(token.index)
                continue
            if expect_element:
                result.append(token)
                expect_element = False
            position = token.index
            if self.is_opening_bracket(position):
                position = self._pairs[position]
            token = self.next_ns(position)
        return result

    def parameter_at(self, token: Token) -> Parameter:
        """Parse one parameter starting at its first significant token.

        The `&` of an intersection type (`A&B $x`) is part of the type; only
        an `&` directly before the variable or `...` marks a reference.
        """
        is_ref = False
        is_variadic = False

        while token is not None:
            if token.kind is TokenKind.ATTRIBUTE or token.is_char("("):
                # attributes and DNF types: (A&B)|null
                token = self.next_ns(self._pairs[token.index])
                continue
            if token.kind in _PARAM_PREFIX_KINDS or token.is_char("?", "|"):
                token = self.next_ns(token.index)
                continue
            if token.is_char("&"):
                nxt = self.next_ns(token.index)
                if nxt is not None and nxt.kind in (TokenKind.VARIABLE, TokenKind.ELLIPSIS):
                    is_ref = True
                token = nxt
                continue
            if token.kind is TokenKind.ELLIPSIS:
                is_variadic = True
                token = self.next_ns(token.index)
                continue
            break

        variable = token if token is not None and token.kind is TokenKind.VARIABLE else None
        return Parameter(variable, is_ref, is_variadic)

    def statement_end(self, index: int) -> Token | None:
        """The `;` or `?>` ending the statement that contains index.

        Bracketed groups opened after index are skipped as a whole; an
        unmatched closing brace also ends the statement.
        """
        token = self.next_ns(index)
        while token is not None:
            if token.kind is TokenKind.CLOSE_TAG or token.is_char(";"):
                return token
            if self.is_opening_bracket(token.index):
                token = self.next_ns(self._pairs[token.index])
                continue
            if token.is_char("}"):
                return token
            token = self.next_ns(token.index)
        return None

    # ------------------------------------------------------------------
    # construction
    # ------------------------------------------------------------------

    def _build_significant_maps(self) -> tuple[list[int], list[int]]:
        count = len(self.tokens)
        next_sig = [-1] * count
        prev_sig = [-1] * count

        last = -1
        for i in range(count - 1, -1, -1):
            next_sig[i] = last
            if not self.tokens[i].is_trivial:
                last = i

        last = -1
        for i in range(count):
            prev_sig[i] = last
            if not self.tokens[i].is_trivial:
                last = i

        return next_sig, prev_sig

    def _build_bracket_map(self) -> dict[int, int]:
        pairs: dict[int, int] = {}
        stack: list[Token] = []

        for token in self.tokens:
            opener = None
            if token.kind is TokenKind.ONE_CHAR and token.text in "([{":
                opener = token.text
            elif token.kind in (
                TokenKind.CURLY_OPEN,
                TokenKind.DOLLAR_OPEN_CURLY_BRACES,
                TokenKind.ATTRIBUTE,
            ):
                opener = token.text
            if opener is not None:
                stack.append(token)
                continue

            if token.kind is TokenKind.ONE_CHAR and token.text in ")]}":
                if not stack:
                    raise ParseError(f"Unmatched '{token.text}'", token)
                open_token = stack.pop()
                if _CLOSER_FOR[open_token.text] != token.text:
                    raise ParseError(
                        f"'{token.text}' does not close '{open_token.text}' from line {open_token.line}",
                        token,
                    )
                pairs[open_token.index] = token.index
                pairs[token.index] = open_token.index

        if stack:
            raise ParseError(f"Unclosed '{stack[-1].text}'", stack[-1])
        return pairs

    def _build_interval_map(self, intervals: list[tuple[int, int]]) -> list[int]:
        """Per-token position of the innermost interval containing it, or -1."""
        owner = [-1] * len(self.tokens)
        # outer intervals start first, so inner ones overwrite them
        order = sorted(range(len(intervals)), key=lambda pos: intervals[pos][0])
        for pos in order:
            start, end = intervals[pos]
            for i in range(start, end + 1):
                owner[i] = pos
        return owner

    def _find_classes(self):
        for token in self.tokens:
            if token.kind not in _CLASS_KINDS:
                continue
            prev = self.prev_ns(token.index)
            if prev is not None and prev.kind is TokenKind.DOUBLE_COLON:
                continue

            name = None
            nxt = self.next_ns(token.index)
            if nxt is not None and nxt.kind is TokenKind.STRING:
                name = nxt.text

            # skip constructor arguments of anonymous classes and the
            # extends/implements clause up to the body
            while nxt is not None and not nxt.is_char("{"):
                position = nxt.index
                if nxt.is_char("("):
                    position = self._pairs[position]
                elif nxt.is_char(";"):
                    raise ParseError("Class declaration without body", token)
                nxt = self.next_ns(position)
            if nxt is None:
                raise ParseError("Class declaration without body", token)

            yield ClassInfo(name, token.index, nxt.index, self._pairs[nxt.index])

    def _find_functions(self):
        for token in self.tokens:
            if token.kind is not TokenKind.FUNCTION:
                continue
            prev = self.prev_ns(token.index)
            if prev is not None and prev.kind is TokenKind.USE:
                # use function Foo\bar;
                continue

            nxt = self.next_ns(token.index)
            if nxt is not None and nxt.is_char("&"):
                nxt = self.next_ns(nxt.index)

            name = None
            name_index = None
            if nxt is not None and nxt.kind is TokenKind.STRING:
                name, name_index = nxt.text, nxt.index
                nxt = self.next_ns(nxt.index)

            if nxt is None or not nxt.is_char("("):
                raise ParseError("Invalid function declaration: '(' expected", nxt or token)
            params_start = nxt.index

            body = self.skip_function_header(params_start)
            if body is None:
                raise ParseError("Invalid function declaration: body or ';' expected", token)

            cls = self.class_at(token.index) if name is not None else None
            if body.is_char("{"):
                yield MethodInfo(
                    name,
                    cls.name if cls is not None else None,
                    token.index,
                    name_index,
                    params_start,
                    body.index,
                    self._pairs[body.index],
                )
            else:
                yield MethodInfo(
                    name,
                    cls.name if cls is not None else None,
                    token.index,
                    name_index,
                    params_start,
                    None,
                    body.index,
                )

    def skip_function_header(self, params_start: int) -> Token | None:
        """From the parameter list's `(`, find the body `{` or terminating `;`.

        Skips a closure's `use (...)` clause and a return type declaration.
        """
        nxt = self.next_ns(self._pairs[params_start])
        if nxt is not None and nxt.kind is TokenKind.USE:
            nxt = self.next_ns(nxt.index)
            if nxt is None or not nxt.is_char("("):
                return None
            nxt = self.next_ns(self._pairs[nxt.index])
        if nxt is not None and nxt.is_char(":"):
            while nxt is not None and not nxt.is_char("{", ";"):
                position = nxt.index
                if nxt.is_char("("):
                    position = self._pairs[position]
                nxt = self.next_ns(position)
        if nxt is None or not nxt.is_char("{", ";"):
            return None
        return nxt
