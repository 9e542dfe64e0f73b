"""Tests for the PHP tokenizer."""

import pytest

from varaudit.exceptions import ParseError
from varaudit.parsers import TokenKind, tokenize


def significant(source):
    return [(t.kind, t.text) for t in tokenize(source) if not t.is_trivial]


class TestBasicTokens:
    """Open tags, keywords, operators and line numbers."""

    def test_simple_statement(self):
        assert significant("<?php echo $a;") == [
            (TokenKind.OPEN_TAG, "<?php "),
            (TokenKind.ECHO, "echo"),
            (TokenKind.VARIABLE, "$a"),
            (TokenKind.ONE_CHAR, ";"),
        ]

    def test_inline_html_and_close_tag(self):
        tokens = tokenize("<p>\n<?= $title ?>\n</p>")
        kinds = [t.kind for t in tokens if not t.is_trivial]
        assert kinds == [
            TokenKind.INLINE_HTML,
            TokenKind.OPEN_TAG_WITH_ECHO,
            TokenKind.VARIABLE,
            TokenKind.CLOSE_TAG,
            TokenKind.INLINE_HTML,
        ]

    def test_keywords_are_case_insensitive(self):
        kinds = [k for k, _ in significant("<?php FOREACH ($a As $b) {}")]
        assert TokenKind.FOREACH in kinds
        assert TokenKind.AS in kinds

    def test_member_names_are_never_keywords(self):
        """$obj->list(), Foo::class, function each() are names."""
        tokens = significant("<?php $obj->list(); Foo::class; function &each() {}")
        names = [text for kind, text in tokens if kind is TokenKind.STRING]
        assert names == ["list", "Foo", "class", "each"]

    def test_operators(self):
        tokens = significant("<?php $a ??= $b?->c; $d .= 1; $e++; $f += 2; fn() => 1;")
        kinds = [k for k, _ in tokens]
        for kind in (
            TokenKind.COALESCE_EQUAL,
            TokenKind.NULLSAFE_OBJECT_OPERATOR,
            TokenKind.CONCAT_EQUAL,
            TokenKind.INC,
            TokenKind.PLUS_EQUAL,
            TokenKind.FN,
            TokenKind.DOUBLE_ARROW,
        ):
            assert kind in kinds

    def test_namespaced_name(self):
        tokens = significant("<?php namespace foo\\bar;")
        assert tokens[1:] == [
            (TokenKind.NAMESPACE, "namespace"),
            (TokenKind.STRING, "foo"),
            (TokenKind.NS_SEPARATOR, "\\"),
            (TokenKind.STRING, "bar"),
            (TokenKind.ONE_CHAR, ";"),
        ]

    def test_line_numbers_and_indexes(self):
        tokens = tokenize("<?php\n\n$a = 1;\n/* two\nlines */ $b;")
        for position, token in enumerate(tokens):
            assert token.index == position
        by_text = {t.text: t.line for t in tokens}
        assert by_text["$a"] == 3
        assert by_text["$b"] == 5

    def test_comments(self):
        tokens = tokenize("<?php // line ?>\n<?php # hash\n/** doc */ /* block */ #[Attr] $x;")
        kinds = [t.kind for t in tokens]
        assert TokenKind.CLOSE_TAG in kinds
        assert TokenKind.DOC_COMMENT in kinds
        assert TokenKind.COMMENT in kinds
        assert TokenKind.ATTRIBUTE in kinds


class TestStrings:
    """Constant and interpolated strings."""

    def test_constant_strings(self):
        tokens = significant("<?php 'a $b'; \"plain \\$x {not}\";")
        strings = [text for kind, text in tokens if kind is TokenKind.CONSTANT_ENCAPSED_STRING]
        assert strings == ["'a $b'", '"plain \\$x {not}"']

    def test_simple_interpolation(self):
        tokens = significant('<?php "Hello $name[0]!";')
        assert tokens[1:-1] == [
            (TokenKind.ONE_CHAR, '"'),
            (TokenKind.ENCAPSED_AND_WHITESPACE, "Hello "),
            (TokenKind.VARIABLE, "$name"),
            (TokenKind.ONE_CHAR, "["),
            (TokenKind.NUM_STRING, "0"),
            (TokenKind.ONE_CHAR, "]"),
            (TokenKind.ENCAPSED_AND_WHITESPACE, "!"),
            (TokenKind.ONE_CHAR, '"'),
        ]

    def test_property_and_complex_interpolation(self):
        tokens = significant('<?php "$user->name {$a[$i]} ${var}";')
        kinds = [k for k, _ in tokens]
        assert (TokenKind.OBJECT_OPERATOR, "->") in tokens
        assert (TokenKind.STRING, "name") in tokens
        assert TokenKind.CURLY_OPEN in kinds
        assert (TokenKind.VARIABLE, "$i") in tokens
        assert TokenKind.DOLLAR_OPEN_CURLY_BRACES in kinds
        assert (TokenKind.STRING_VARNAME, "var") in tokens

    def test_heredoc_and_nowdoc(self):
        source = "<?php\n$a = <<<EOT\n  x $b\n  EOT;\n$c = <<<'EOT'\n  $d\n  EOT;\n"
        tokens = tokenize(source)
        variables = [t.text for t in tokens if t.kind is TokenKind.VARIABLE]
        assert variables == ["$a", "$b", "$c"]
        assert sum(1 for t in tokens if t.kind is TokenKind.END_HEREDOC) == 2
        assert next(t for t in tokens if t.text == "$c").line == 5


class TestErrors:
    """Unterminated constructs raise ParseError."""

    @pytest.mark.parametrize(
        "source",
        [
            "<?php /* never closed",
            "<?php $a = 'abc",
            '<?php $a = "abc $b',
            "<?php $a = <<<EOT\nno end\n",
            '<?php "{$a"',
        ],
    )
    def test_unterminated(self, source):
        with pytest.raises(ParseError):
            tokenize(source)
