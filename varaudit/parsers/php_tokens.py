"""PHP tokenizer - lexes source into a flat token list.

Token kinds carry the names used by PHP's own tokenizer extension (T_VARIABLE,
T_STRING, T_DOUBLE_COLON, ...) so construct handlers read like the grammar.
Single punctuation characters share the T_ONE_CHAR kind and are told apart by
their text.

Interpolated strings are split the way PHP splits them:

    "Hello $name[0]!"  ->  '"'  T_ENCAPSED_AND_WHITESPACE  T_VARIABLE  '['
                           T_NUM_STRING  ']'  T_ENCAPSED_AND_WHITESPACE  '"'

so every variable read inside a string is a T_VARIABLE token of its own.
"""

import re
from dataclasses import dataclass
from enum import Enum

from varaudit.exceptions import ParseError


class TokenKind(Enum):
    """Lexical classes of PHP tokens."""

    INLINE_HTML = "T_INLINE_HTML"
    OPEN_TAG = "T_OPEN_TAG"
    OPEN_TAG_WITH_ECHO = "T_OPEN_TAG_WITH_ECHO"
    CLOSE_TAG = "T_CLOSE_TAG"
    WHITESPACE = "T_WHITESPACE"
    COMMENT = "T_COMMENT"
    DOC_COMMENT = "T_DOC_COMMENT"
    VARIABLE = "T_VARIABLE"
    STRING = "T_STRING"
    LNUMBER = "T_LNUMBER"
    DNUMBER = "T_DNUMBER"
    CONSTANT_ENCAPSED_STRING = "T_CONSTANT_ENCAPSED_STRING"
    ENCAPSED_AND_WHITESPACE = "T_ENCAPSED_AND_WHITESPACE"
    NUM_STRING = "T_NUM_STRING"
    STRING_VARNAME = "T_STRING_VARNAME"
    CURLY_OPEN = "T_CURLY_OPEN"
    DOLLAR_OPEN_CURLY_BRACES = "T_DOLLAR_OPEN_CURLY_BRACES"
    START_HEREDOC = "T_START_HEREDOC"
    END_HEREDOC = "T_END_HEREDOC"
    ATTRIBUTE = "T_ATTRIBUTE"
    ONE_CHAR = "T_ONE_CHAR"

    # operators the engine inspects
    INC = "T_INC"
    DEC = "T_DEC"
    CONCAT_EQUAL = "T_CONCAT_EQUAL"
    PLUS_EQUAL = "T_PLUS_EQUAL"
    COALESCE_EQUAL = "T_COALESCE_EQUAL"
    DOUBLE_COLON = "T_DOUBLE_COLON"
    OBJECT_OPERATOR = "T_OBJECT_OPERATOR"
    NULLSAFE_OBJECT_OPERATOR = "T_NULLSAFE_OBJECT_OPERATOR"
    DOUBLE_ARROW = "T_DOUBLE_ARROW"
    NS_SEPARATOR = "T_NS_SEPARATOR"
    ELLIPSIS = "T_ELLIPSIS"
    OPERATOR = "T_OPERATOR"

    # keywords
    ABSTRACT = "T_ABSTRACT"
    ARRAY = "T_ARRAY"
    AS = "T_AS"
    BREAK = "T_BREAK"
    CALLABLE = "T_CALLABLE"
    CASE = "T_CASE"
    CATCH = "T_CATCH"
    CLASS = "T_CLASS"
    CLONE = "T_CLONE"
    CONST = "T_CONST"
    CONTINUE = "T_CONTINUE"
    DECLARE = "T_DECLARE"
    DEFAULT = "T_DEFAULT"
    DO = "T_DO"
    ECHO = "T_ECHO"
    ELSE = "T_ELSE"
    ELSEIF = "T_ELSEIF"
    EMPTY = "T_EMPTY"
    ENDDECLARE = "T_ENDDECLARE"
    ENDFOR = "T_ENDFOR"
    ENDFOREACH = "T_ENDFOREACH"
    ENDIF = "T_ENDIF"
    ENDSWITCH = "T_ENDSWITCH"
    ENDWHILE = "T_ENDWHILE"
    EVAL = "T_EVAL"
    EXIT = "T_EXIT"
    EXTENDS = "T_EXTENDS"
    FINAL = "T_FINAL"
    FINALLY = "T_FINALLY"
    FN = "T_FN"
    FOR = "T_FOR"
    FOREACH = "T_FOREACH"
    FUNCTION = "T_FUNCTION"
    GLOBAL = "T_GLOBAL"
    GOTO = "T_GOTO"
    IF = "T_IF"
    IMPLEMENTS = "T_IMPLEMENTS"
    INCLUDE = "T_INCLUDE"
    INCLUDE_ONCE = "T_INCLUDE_ONCE"
    INSTANCEOF = "T_INSTANCEOF"
    INSTEADOF = "T_INSTEADOF"
    INTERFACE = "T_INTERFACE"
    ISSET = "T_ISSET"
    LIST = "T_LIST"
    LOGICAL_AND = "T_LOGICAL_AND"
    LOGICAL_OR = "T_LOGICAL_OR"
    LOGICAL_XOR = "T_LOGICAL_XOR"
    MATCH = "T_MATCH"
    NAMESPACE = "T_NAMESPACE"
    NEW = "T_NEW"
    PRINT = "T_PRINT"
    PRIVATE = "T_PRIVATE"
    PROTECTED = "T_PROTECTED"
    PUBLIC = "T_PUBLIC"
    READONLY = "T_READONLY"
    REQUIRE = "T_REQUIRE"
    REQUIRE_ONCE = "T_REQUIRE_ONCE"
    RETURN = "T_RETURN"
    STATIC = "T_STATIC"
    SWITCH = "T_SWITCH"
    THROW = "T_THROW"
    TRAIT = "T_TRAIT"
    TRY = "T_TRY"
    UNSET = "T_UNSET"
    USE = "T_USE"
    VAR = "T_VAR"
    WHILE = "T_WHILE"
    YIELD = "T_YIELD"


TRIVIAL_KINDS = frozenset({TokenKind.WHITESPACE, TokenKind.COMMENT, TokenKind.DOC_COMMENT})

KEYWORDS: dict[str, TokenKind] = {
    "abstract": TokenKind.ABSTRACT,
    "and": TokenKind.LOGICAL_AND,
    "array": TokenKind.ARRAY,
    "as": TokenKind.AS,
    "break": TokenKind.BREAK,
    "callable": TokenKind.CALLABLE,
    "case": TokenKind.CASE,
    "catch": TokenKind.CATCH,
    "class": TokenKind.CLASS,
    "clone": TokenKind.CLONE,
    "const": TokenKind.CONST,
    "continue": TokenKind.CONTINUE,
    "declare": TokenKind.DECLARE,
    "default": TokenKind.DEFAULT,
    "die": TokenKind.EXIT,
    "do": TokenKind.DO,
    "echo": TokenKind.ECHO,
    "else": TokenKind.ELSE,
    "elseif": TokenKind.ELSEIF,
    "empty": TokenKind.EMPTY,
    "enddeclare": TokenKind.ENDDECLARE,
    "endfor": TokenKind.ENDFOR,
    "endforeach": TokenKind.ENDFOREACH,
    "endif": TokenKind.ENDIF,
    "endswitch": TokenKind.ENDSWITCH,
    "endwhile": TokenKind.ENDWHILE,
    "eval": TokenKind.EVAL,
    "exit": TokenKind.EXIT,
    "extends": TokenKind.EXTENDS,
    "final": TokenKind.FINAL,
    "finally": TokenKind.FINALLY,
    "fn": TokenKind.FN,
    "for": TokenKind.FOR,
    "foreach": TokenKind.FOREACH,
    "function": TokenKind.FUNCTION,
    "global": TokenKind.GLOBAL,
    "goto": TokenKind.GOTO,
    "if": TokenKind.IF,
    "implements": TokenKind.IMPLEMENTS,
    "include": TokenKind.INCLUDE,
    "include_once": TokenKind.INCLUDE_ONCE,
    "instanceof": TokenKind.INSTANCEOF,
    "insteadof": TokenKind.INSTEADOF,
    "interface": TokenKind.INTERFACE,
    "isset": TokenKind.ISSET,
    "list": TokenKind.LIST,
    "match": TokenKind.MATCH,
    "namespace": TokenKind.NAMESPACE,
    "new": TokenKind.NEW,
    "or": TokenKind.LOGICAL_OR,
    "print": TokenKind.PRINT,
    "private": TokenKind.PRIVATE,
    "protected": TokenKind.PROTECTED,
    "public": TokenKind.PUBLIC,
    "readonly": TokenKind.READONLY,
    "require": TokenKind.REQUIRE,
    "require_once": TokenKind.REQUIRE_ONCE,
    "return": TokenKind.RETURN,
    "static": TokenKind.STATIC,
    "switch": TokenKind.SWITCH,
    "throw": TokenKind.THROW,
    "trait": TokenKind.TRAIT,
    "try": TokenKind.TRY,
    "unset": TokenKind.UNSET,
    "use": TokenKind.USE,
    "var": TokenKind.VAR,
    "while": TokenKind.WHILE,
    "xor": TokenKind.LOGICAL_XOR,
    "yield": TokenKind.YIELD,
}

# Multi-character operators, sorted by length descending for greedy matching
OPERATORS: dict[str, TokenKind] = {
    "<<=": TokenKind.OPERATOR,
    ">>=": TokenKind.OPERATOR,
    "**=": TokenKind.OPERATOR,
    "...": TokenKind.ELLIPSIS,
    "<=>": TokenKind.OPERATOR,
    "===": TokenKind.OPERATOR,
    "!==": TokenKind.OPERATOR,
    "??=": TokenKind.COALESCE_EQUAL,
    "?->": TokenKind.NULLSAFE_OBJECT_OPERATOR,
    "++": TokenKind.INC,
    "--": TokenKind.DEC,
    "->": TokenKind.OBJECT_OPERATOR,
    "=>": TokenKind.DOUBLE_ARROW,
    "::": TokenKind.DOUBLE_COLON,
    "==": TokenKind.OPERATOR,
    "!=": TokenKind.OPERATOR,
    "<>": TokenKind.OPERATOR,
    "<=": TokenKind.OPERATOR,
    ">=": TokenKind.OPERATOR,
    "&&": TokenKind.OPERATOR,
    "||": TokenKind.OPERATOR,
    "??": TokenKind.OPERATOR,
    "+=": TokenKind.PLUS_EQUAL,
    "-=": TokenKind.OPERATOR,
    "*=": TokenKind.OPERATOR,
    "/=": TokenKind.OPERATOR,
    ".=": TokenKind.CONCAT_EQUAL,
    "%=": TokenKind.OPERATOR,
    "&=": TokenKind.OPERATOR,
    "|=": TokenKind.OPERATOR,
    "^=": TokenKind.OPERATOR,
    "<<": TokenKind.OPERATOR,
    ">>": TokenKind.OPERATOR,
    "**": TokenKind.OPERATOR,
}

# identifiers after these tokens are names, never keywords: $obj->list(), Foo::class
_MEMBER_ACCESS = frozenset(
    {TokenKind.OBJECT_OPERATOR, TokenKind.NULLSAFE_OBJECT_OPERATOR, TokenKind.DOUBLE_COLON}
)

_IDENT = r"[A-Za-z_\x80-\U0010ffff][0-9A-Za-z_\x80-\U0010ffff]*"

_CODE_RE = re.compile(
    rf"""
      (?P<ws>[ \t\r\n]+)
    | (?P<doc>/\*\*[ \t\r\n])
    | (?P<block>/\*)
    | (?P<line>(?://|\#(?!\[))(?:[^\r\n?]|\?(?!>))*)
    | (?P<attr>\#\[)
    | (?P<var>\${_IDENT})
    | (?P<num>0[xX][0-9a-fA-F_]+|0[bB][01_]+
        |(?:[0-9][0-9_]*)?\.[0-9][0-9_]*(?:[eE][+-]?[0-9]+)?
        |[0-9][0-9_]*(?:[eE][+-]?[0-9]+)?)
    | (?P<ident>{_IDENT})
    | (?P<sq>'(?:[^'\\]|\\.)*')
    | (?P<dq>["`])
    | (?P<heredoc><<<[ \t]*(?P<hq>["']?)(?P<label>[A-Za-z_][0-9A-Za-z_]*)(?P=hq)\r?\n)
    | (?P<close>\?>(?:\r?\n)?)
    | (?P<op>{"|".join(re.escape(op) for op in OPERATORS)})
    | (?P<char>.)
    """,
    re.S | re.X,
)

_OPEN_TAG_RE = re.compile(r"<\?(?:php(?:[ \t]|\r?\n|$)|=|(?!xml))", re.I)

# double-quoted/backtick string without anything to interpolate
_PLAIN_STRING_RE = {
    quote: re.compile(
        rf"{quote}(?:[^{quote}\\${{]|\\.|\$(?![A-Za-z_\x80-\U0010ffff{{])|\{{(?!\$))*{quote}",
        re.S,
    )
    for quote in ('"', "`")
}

_SIMPLE_VARIABLE_RE = re.compile(rf"\${_IDENT}")
_SIMPLE_INDEX_RE = re.compile(rf"\[(?:(?P<num>-?[0-9]+)|(?P<name>{_IDENT})|(?P<var>\${_IDENT}))\]")
_SIMPLE_PROPERTY_RE = re.compile(rf"(?P<op>\??->)(?P<name>{_IDENT})")
_VARNAME_RE = re.compile(rf"{_IDENT}(?=\}})")
_INTERPOLATION_START_RE = re.compile(r"\$[A-Za-z_\x80-\U0010ffff{]|\{\$")


@dataclass(frozen=True, slots=True)
class Token:
    """A token with kind, source text, line and position in the token list."""

    kind: TokenKind
    text: str
    line: int
    index: int

    def is_char(self, *chars: str) -> bool:
        """True for a one-character punctuation token with one of the given texts."""
        return self.kind is TokenKind.ONE_CHAR and self.text in chars

    @property
    def is_trivial(self) -> bool:
        return self.kind in TRIVIAL_KINDS

    def __str__(self) -> str:
        return self.text


class _Lexer:
    """Single-use scanner state over one source text."""

    def __init__(self, source: str):
        self.src = source
        self.pos = 0
        self.line = 1
        self.tokens: list[Token] = []
        self._last: TokenKind | None = None
        self._before_last: TokenKind | None = None

    def run(self) -> list[Token]:
        while self.pos < len(self.src):
            self._lex_html()
            if self.pos < len(self.src):
                self._lex_code()
        return self.tokens

    def _emit(self, kind: TokenKind, text: str) -> None:
        self.tokens.append(Token(kind, text, self.line, len(self.tokens)))
        self.line += text.count("\n")
        if kind not in TRIVIAL_KINDS:
            self._before_last = self._last
            self._last = kind

    def _error(self, message: str) -> ParseError:
        return ParseError(f"{message} at line {self.line}")

    def _lex_html(self) -> None:
        m = _OPEN_TAG_RE.search(self.src, self.pos)
        if m is None:
            self._emit(TokenKind.INLINE_HTML, self.src[self.pos :])
            self.pos = len(self.src)
            return
        if m.start() > self.pos:
            self._emit(TokenKind.INLINE_HTML, self.src[self.pos : m.start()])
        kind = TokenKind.OPEN_TAG_WITH_ECHO if m.group(0) == "<?=" else TokenKind.OPEN_TAG
        self._emit(kind, m.group(0))
        self.pos = m.end()

    def _lex_code(self, stop_at_brace: bool = False) -> None:
        """Lex PHP code until `?>`, end of input or (stop_at_brace) an unmatched `}`."""
        depth = 0
        src = self.src
        while self.pos < len(src):
            m = _CODE_RE.match(src, self.pos)
            group = m.lastgroup
            text = m.group(0)

            if group == "ws":
                self._emit(TokenKind.WHITESPACE, text)
            elif group in ("doc", "block"):
                end = src.find("*/", self.pos + 2)
                if end < 0:
                    raise self._error("Unterminated comment")
                text = src[self.pos : end + 2]
                self._emit(TokenKind.DOC_COMMENT if group == "doc" else TokenKind.COMMENT, text)
                self.pos = end + 2
                continue
            elif group == "line":
                self._emit(TokenKind.COMMENT, text)
            elif group == "attr":
                self._emit(TokenKind.ATTRIBUTE, text)
            elif group == "var":
                self._emit(TokenKind.VARIABLE, text)
            elif group == "num":
                is_float = "." in text or (text[:2].lower() != "0x" and "e" in text.lower())
                self._emit(TokenKind.DNUMBER if is_float else TokenKind.LNUMBER, text)
            elif group == "ident":
                self._emit(self._identifier_kind(text), text)
            elif group == "sq":
                self._emit(TokenKind.CONSTANT_ENCAPSED_STRING, text)
            elif group == "dq":
                self._lex_quoted(text)
                continue
            elif group == "heredoc":
                self._lex_heredoc(m)
                continue
            elif group == "close":
                self._emit(TokenKind.CLOSE_TAG, text)
                self.pos = m.end()
                return
            elif group == "op":
                self._emit(OPERATORS[text], text)
            elif text == "'":
                raise self._error("Unterminated string")
            elif text == "\\":
                self._emit(TokenKind.NS_SEPARATOR, text)
            else:
                self._emit(TokenKind.ONE_CHAR, text)
                if stop_at_brace:
                    if text == "{":
                        depth += 1
                    elif text == "}":
                        if depth == 0:
                            self.pos = m.end()
                            return
                        depth -= 1
            self.pos = m.end()

        if stop_at_brace:
            raise self._error("Unterminated interpolation")

    def _identifier_kind(self, text: str) -> TokenKind:
        kind = KEYWORDS.get(text.lower())
        if kind is None or self._last in _MEMBER_ACCESS:
            return TokenKind.STRING
        # function list() {...}, function &each() {...}
        if self._last is TokenKind.FUNCTION or (
            self._before_last is TokenKind.FUNCTION and self._last_text() == "&"
        ):
            return TokenKind.STRING
        return kind

    def _last_text(self) -> str:
        for token in reversed(self.tokens):
            if not token.is_trivial:
                return token.text
        return ""

    def _lex_quoted(self, quote: str) -> None:
        m = _PLAIN_STRING_RE[quote].match(self.src, self.pos)
        if m is not None:
            self._emit(TokenKind.CONSTANT_ENCAPSED_STRING, m.group(0))
            self.pos = m.end()
            return

        self._emit(TokenKind.ONE_CHAR, quote)
        self.pos += 1
        self._lex_encapsed(quote, None)
        if self.pos >= len(self.src):
            raise self._error("Unterminated string")
        self._emit(TokenKind.ONE_CHAR, quote)
        self.pos += 1

    def _lex_heredoc(self, m: re.Match) -> None:
        label = m.group("label")
        is_nowdoc = m.group("hq") == "'"
        self._emit(TokenKind.START_HEREDOC, m.group(0))
        self.pos = m.end()

        closing_re = re.compile(
            r"^[ \t]*" + re.escape(label) + r"(?![0-9A-Za-z_\x80-\U0010ffff])", re.M
        )
        closing = closing_re.search(self.src, self.pos)
        if closing is None:
            raise self._error(f"Unterminated heredoc <<<{label}")

        body = self.src[self.pos : closing.start()]
        if is_nowdoc or not _INTERPOLATION_START_RE.search(body):
            if body:
                self._emit(TokenKind.ENCAPSED_AND_WHITESPACE, body)
        else:
            self._lex_encapsed(None, closing.start())

        self.pos = closing.start()
        self._emit(TokenKind.END_HEREDOC, closing.group(0))
        self.pos = closing.end()

    def _lex_encapsed(self, terminator: str | None, end: int | None) -> None:
        """Split string contents into text pieces and interpolated expressions."""
        src = self.src
        text_start = self.pos

        def flush() -> None:
            if self.pos > text_start:
                self._emit(TokenKind.ENCAPSED_AND_WHITESPACE, src[text_start : self.pos])

        while True:
            if end is not None and self.pos >= end:
                break
            if self.pos >= len(src):
                if end is None:
                    raise self._error("Unterminated string")
                break
            c = src[self.pos]
            nxt = src[self.pos + 1 : self.pos + 2]

            if terminator is not None and c == terminator:
                break
            if c == "\\":
                self.pos += 2
                continue

            if c == "$" and (nxt.isalpha() or nxt == "_" or (nxt and ord(nxt) >= 0x80)):
                flush()
                self._lex_simple_interpolation()
            elif c == "{" and nxt == "$":
                flush()
                self._emit(TokenKind.CURLY_OPEN, "{")
                self.pos += 1
                self._lex_code(stop_at_brace=True)
            elif c == "$" and nxt == "{":
                flush()
                self._emit(TokenKind.DOLLAR_OPEN_CURLY_BRACES, "${")
                self.pos += 2
                m = _VARNAME_RE.match(src, self.pos)
                if m is not None:
                    self._emit(TokenKind.STRING_VARNAME, m.group(0))
                    self.pos = m.end()
                    self._emit(TokenKind.ONE_CHAR, "}")
                    self.pos += 1
                else:
                    self._lex_code(stop_at_brace=True)
            else:
                self.pos += 1
                continue
            text_start = self.pos

        flush()

    def _lex_simple_interpolation(self) -> None:
        m = _SIMPLE_VARIABLE_RE.match(self.src, self.pos)
        self._emit(TokenKind.VARIABLE, m.group(0))
        self.pos = m.end()

        index = _SIMPLE_INDEX_RE.match(self.src, self.pos)
        if index is not None:
            self._emit(TokenKind.ONE_CHAR, "[")
            if index.group("num") is not None:
                self._emit(TokenKind.NUM_STRING, index.group("num"))
            elif index.group("name") is not None:
                self._emit(TokenKind.STRING, index.group("name"))
            else:
                self._emit(TokenKind.VARIABLE, index.group("var"))
            self._emit(TokenKind.ONE_CHAR, "]")
            self.pos = index.end()
            return

        prop = _SIMPLE_PROPERTY_RE.match(self.src, self.pos)
        if prop is not None:
            self._emit(OPERATORS[prop.group("op")], prop.group("op"))
            self._emit(TokenKind.STRING, prop.group("name"))
            self.pos = prop.end()


def tokenize(source: str) -> list[Token]:
    """Lex a PHP source text into tokens; raises ParseError on unterminated constructs."""
    return _Lexer(source).run()
