"""Tests for @var annotation parsing."""

from varaudit.lint.doc_comments import parse_doc_comment


class TestParseDocComment:
    def test_single_line(self):
        assert parse_doc_comment("/** @var SimpleClass $simple_test */") == {
            "$simple_test": "SimpleClass"
        }

    def test_multi_line(self):
        declared = parse_doc_comment("/**\n * @var SimpleClass $simple_test\n */")
        assert declared == {"$simple_test": "SimpleClass"}

    def test_property_style_annotation_is_ignored(self):
        """`@var Type` without a variable describes a property, not a local."""
        assert parse_doc_comment("/** @var SimpleClass */") == {}

    def test_long_comment(self):
        declared = parse_doc_comment(
            "/**\n"
            "Some introductory text\n"
            " * @var $just_var_without_class\n"
            " * @var SimpleClass $simple_test\n"
            " * @var AnotherClass $foo , $bar\n"
            " * @var YetAnotherClass $a,$b,$c\n"
            "\n"
            " */"
        )
        assert len(declared) == 7
        assert declared["$simple_test"] == "SimpleClass"
        assert declared["$foo"] == "AnotherClass"
        assert declared["$bar"] == "AnotherClass"
        assert declared["$a"] == declared["$b"] == declared["$c"] == "YetAnotherClass"
        assert "$just_var_without_class" in declared
        assert declared["$just_var_without_class"] is None

    def test_namespaced_types(self):
        declared = parse_doc_comment(
            "/**\n * @var  \\Foo\\Bar $foo_bar\n * @var Baz\\Quxx $baz, $quxx,\n */"
        )
        assert declared == {
            "$foo_bar": "\\Foo\\Bar",
            "$baz": "Baz\\Quxx",
            "$quxx": "Baz\\Quxx",
        }

    def test_no_annotations(self):
        assert parse_doc_comment("/** Returns $x unchanged. */") == {}
