"""
Tests for ocr_search/query/parser.py
"""

import pytest

from ocr_search.errors import QuerySyntaxError
from ocr_search.query import (
    BinaryExpression,
    BinaryOperator,
    Identifier,
    Literal,
    UnaryExpression,
    UnaryOperator,
    parse_query,
    search,
    tokenize,
)
from ocr_search.query.parser import MAX_DEPTH

AND, OR, NOT = BinaryOperator.AND, BinaryOperator.OR, UnaryOperator.NOT


class TestTokenize:
    def test_kinds(self):
        kinds = [t.kind for t in tokenize("!(salt&dough)|water")]
        assert kinds == ["!", "(", "WORD", "&", "WORD", ")", "|", "WORD", "END"]

    def test_positions(self):
        tokens = tokenize("salt | dough")
        assert [(t.value, t.position) for t in tokens[:3]] == [("salt", 0), ("|", 5), ("dough", 7)]


class TestParse:
    def test_single_word(self):
        assert parse_query("salt") == Identifier("salt")

    def test_query_is_lowercased(self):
        assert parse_query("WATER") == Identifier("water")

    def test_numbers_are_literals(self):
        assert parse_query("2024") == Literal("2024")

    def test_quoted_words_are_literals(self):
        assert parse_query("'Salt'|\"dough\"") == BinaryExpression(OR, Literal("salt"), Literal("dough"))

    def test_hyphenated_word(self):
        assert parse_query("e-mail&set-up") == BinaryExpression(
            AND, Identifier("e-mail"), Identifier("set-up")
        )

    def test_and_binds_tighter_than_or(self):
        assert parse_query("a|b&c") == BinaryExpression(
            OR, Identifier("a"), BinaryExpression(AND, Identifier("b"), Identifier("c"))
        )

    def test_not_binds_tighter_than_and(self):
        assert parse_query("!a&b") == BinaryExpression(
            AND, UnaryExpression(NOT, Identifier("a")), Identifier("b")
        )

    def test_left_associative(self):
        assert parse_query("a|b|c") == BinaryExpression(
            OR, BinaryExpression(OR, Identifier("a"), Identifier("b")), Identifier("c")
        )

    def test_parentheses_override_precedence(self):
        assert parse_query("water|(salt&dough)") == BinaryExpression(
            OR, Identifier("water"),
            BinaryExpression(AND, Identifier("salt"), Identifier("dough")),
        )
        assert parse_query("(a|b)&c") == BinaryExpression(
            AND, BinaryExpression(OR, Identifier("a"), Identifier("b")), Identifier("c")
        )

    def test_double_negation(self):
        assert parse_query("!!bake") == UnaryExpression(NOT, UnaryExpression(NOT, Identifier("bake")))

    def test_whitespace_ignored(self):
        assert parse_query("  salt  &\tdough ") == parse_query("salt&dough")

    def test_parsing_is_idempotent(self):
        assert parse_query("!(a&b)|c") == parse_query("!(a&b)|c")


class TestSyntaxErrors:
    @pytest.mark.parametrize("query", [
        "",
        "   ",
        "salt&",
        "&salt",
        "salt|",
        "!",
        "(salt",
        "salt)",
        "()",
        "salt dough",
        "salt&&dough",
        "salt||dough",
        "salt+dough",
        "salt - dough",
        "salt=dough",
        "salt!=dough",
        "'salt",
        "''",
        "salt*",
    ])
    def test_invalid(self, query):
        with pytest.raises(QuerySyntaxError):
            parse_query(query)

    def test_position_reported(self):
        with pytest.raises(QuerySyntaxError) as excinfo:
            parse_query("salt+dough")
        assert excinfo.value.position == 4

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            parse_query("a&&b")


class TestNestingLimit:
    def test_deep_negation_is_syntax_error(self):
        with pytest.raises(QuerySyntaxError, match="nested too deeply"):
            parse_query("!" * 5000 + "salt")

    def test_deep_parentheses_are_syntax_error(self):
        with pytest.raises(QuerySyntaxError, match="nested too deeply"):
            parse_query("(" * 1000 + "salt" + ")" * 1000)

    def test_search_reports_syntax_error_not_recursion_error(self):
        with pytest.raises(QuerySyntaxError):
            search([{"words": {"salt"}}], "!" * 5000 + "salt")

    def test_nesting_up_to_limit_parses(self):
        depth = MAX_DEPTH // 2
        tree = parse_query("!(" * depth + "salt" + ")" * depth)
        assert isinstance(tree, UnaryExpression)

    def test_depth_is_not_cumulative_across_siblings(self):
        query = "|".join(["((salt))"] * (MAX_DEPTH * 2))
        parse_query(query)
