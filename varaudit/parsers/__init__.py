"""PHP source parsing: tokenizer and parsed-file navigation."""

from .php_file import ClassInfo, FileType, MethodInfo, Parameter, PhpFile
from .php_tokens import Token, TokenKind, tokenize

__all__ = [
    "ClassInfo",
    "FileType",
    "MethodInfo",
    "Parameter",
    "PhpFile",
    "Token",
    "TokenKind",
    "tokenize",
]
