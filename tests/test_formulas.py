"""Tests for text classification and safe expression evaluation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tagformula.formulas import (
    INVALID_EXPRESSION,
    FormulaParseError,
    build_expression,
    classify,
    evaluate,
    evaluate_expression,
    parse_expression,
    suggestion_query,
)
from tagformula.logging import set_log_dir
from tagformula.tokens import OPERAND_SYMBOLS, NumberToken, OperandToken, TagToken


def _tokens(*items):
    """Build tokens from shorthand: numbers, operator strings, or ('tag', label)."""
    out = []
    for item in items:
        if isinstance(item, tuple):
            out.append(TagToken(label=item[1]))
        elif isinstance(item, str):
            out.append(OperandToken(value=item))
        else:
            out.append(NumberToken(value=item))
    return out


# ────────────────────────────────────────────────────────────────
# Classifier
# ────────────────────────────────────────────────────────────────


class TestClassify:
    @pytest.mark.parametrize("text", ["", "   ", "\t"])
    def test_blank_is_empty(self, text: str) -> None:
        assert classify(text) is None

    @pytest.mark.parametrize("symbol", OPERAND_SYMBOLS)
    def test_operand(self, symbol: str) -> None:
        token = classify(f" {symbol} ")
        assert isinstance(token, OperandToken)
        assert token.value == symbol

    @pytest.mark.parametrize(
        "text,value",
        [("12", 12.0), ("-3.5", -3.5), (".5", 0.5), ("1e3", 1000.0), ("7.", 7.0)],
    )
    def test_number(self, text: str, value: float) -> None:
        token = classify(text)
        assert isinstance(token, NumberToken)
        assert token.value == value

    def test_partial_number_falls_through_to_tag(self) -> None:
        token = classify("12a")
        assert isinstance(token, TagToken)
        assert token.label == "12a"

    def test_overflowing_number_is_tag(self) -> None:
        assert isinstance(classify("1e999"), TagToken)

    def test_prefixed_tag(self) -> None:
        token = classify("@Sales")
        assert isinstance(token, TagToken)
        assert token.label == "Sales"

    def test_bare_prefix_is_free_text_tag(self) -> None:
        token = classify("@")
        assert isinstance(token, TagToken)
        assert token.label == "@"

    def test_free_text_is_tag(self) -> None:
        token = classify("Net Income")
        assert isinstance(token, TagToken)
        assert token.label == "Net Income"

    def test_custom_prefix(self) -> None:
        assert classify("#Rent", tag_prefix="#").label == "Rent"
        assert classify("@Rent", tag_prefix="#").label == "@Rent"

    def test_prefix_then_spaces(self) -> None:
        token = classify("@  Sales ")
        assert isinstance(token, TagToken)
        assert token.label == "Sales"

    def test_fresh_id_per_call(self) -> None:
        assert classify("1").id != classify("1").id


class TestSuggestionQuery:
    def test_prefix_stripped(self) -> None:
        assert suggestion_query("@Sal") == "Sal"

    def test_text_after_last_prefix(self) -> None:
        assert suggestion_query("12 @Sal ") == "Sal"

    def test_no_prefix(self) -> None:
        assert suggestion_query(" Sal ") == "Sal"


# ────────────────────────────────────────────────────────────────
# Parser
# ────────────────────────────────────────────────────────────────


class TestParser:
    def test_rejects_names(self) -> None:
        with pytest.raises(FormulaParseError, match="Disallowed character"):
            parse_expression("1 + abc")

    def test_rejects_code(self) -> None:
        with pytest.raises(FormulaParseError) as exc_info:
            parse_expression("__import__('os')")
        assert exc_info.value.position == 0

    def test_rejects_empty(self) -> None:
        with pytest.raises(FormulaParseError):
            parse_expression("  ")

    def test_rejects_unbalanced_parens(self) -> None:
        with pytest.raises(FormulaParseError):
            parse_expression("( 1 + 2")

    def test_rejects_adjacent_numbers(self) -> None:
        with pytest.raises(FormulaParseError):
            parse_expression("1 2")


class TestEvaluateExpression:
    def test_precedence(self) -> None:
        assert evaluate_expression("2 + 3 * 4") == 14

    def test_parentheses(self) -> None:
        assert evaluate_expression("( 2 + 3 ) * 4") == 20

    def test_exponent_right_associative(self) -> None:
        assert evaluate_expression("2 ^ 3 ^ 2") == 512

    def test_unary_minus_binds_looser_than_exponent(self) -> None:
        assert evaluate_expression("- 2 ^ 2") == -4

    def test_double_negative(self) -> None:
        assert evaluate_expression("3 - -5") == 8

    def test_left_associative_subtraction(self) -> None:
        assert evaluate_expression("10 - 4 - 3") == 3

    def test_exponent_notation_literal(self) -> None:
        assert evaluate_expression("1e+16 / 1e16") == 1


# ────────────────────────────────────────────────────────────────
# evaluate()
# ────────────────────────────────────────────────────────────────


class TestEvaluate:
    def test_empty_sequence(self) -> None:
        assert evaluate([], {}) == "0"

    def test_simple_sum(self) -> None:
        assert evaluate(_tokens(2, "+", 3), {}) == "5"

    def test_tag_binding(self) -> None:
        assert evaluate(_tokens(("tag", "Sales"), "+", 1), {"Sales": 1000}) == "1001"

    def test_unbound_tag_is_zero(self) -> None:
        assert evaluate(_tokens(("tag", "Unknown"), "+", 1), {}) == "1"

    def test_fractional_result(self) -> None:
        assert evaluate(_tokens(5, "/", 2), {}) == "2.5"

    def test_bindings_default(self) -> None:
        assert evaluate(_tokens(4, "*", 4)) == "16"

    def test_operators_only(self) -> None:
        assert evaluate(_tokens("+", "+"), {}) == INVALID_EXPRESSION

    def test_division_by_zero(self) -> None:
        assert evaluate(_tokens(1, "/", 0), {}) == INVALID_EXPRESSION

    def test_division_by_unbound_tag(self) -> None:
        assert evaluate(_tokens(1, "/", ("tag", "Nope")), {}) == INVALID_EXPRESSION

    def test_mismatched_parentheses(self) -> None:
        assert evaluate(_tokens("(", 1, "+", 2), {}) == INVALID_EXPRESSION

    def test_overflow(self) -> None:
        assert evaluate(_tokens(10, "^", 400), {}) == INVALID_EXPRESSION

    def test_complex_result(self) -> None:
        assert evaluate(_tokens("(", -8, ")", "^", 0.5), {}) == INVALID_EXPRESSION

    def test_non_numeric_binding(self) -> None:
        assert evaluate(_tokens(("tag", "x")), {"x": "drop table"}) == INVALID_EXPRESSION

    def test_non_finite_binding(self) -> None:
        assert evaluate(_tokens(("tag", "x")), {"x": float("inf")}) == INVALID_EXPRESSION

    def test_negative_binding(self) -> None:
        assert evaluate(_tokens(10, "-", ("tag", "x")), {"x": -5}) == "15"

    def test_negative_binding_is_raised_as_a_whole(self) -> None:
        assert evaluate(_tokens(("tag", "x"), "^", 2), {"x": -3}) == "9"
        assert build_expression(_tokens(("tag", "x"), "^", 2), {"x": -3}) == "( -3 ) ^ 2"

    def test_build_expression_spacing(self) -> None:
        text = build_expression(_tokens("(", ("tag", "Sales"), "-", 2.5, ")"), {"Sales": 1000})
        assert text == "( 1000 - 2.5 )"

    def test_failure_is_logged(self, tmp_path: Path) -> None:
        set_log_dir(tmp_path)
        assert evaluate(_tokens(1, "/", 0), {}, session_id="s1") == INVALID_EXPRESSION
        lines = (tmp_path / "logs" / "sessions" / "s1.ndjson").read_text().splitlines()
        event = json.loads(lines[-1])
        assert event["event_type"] == "evaluation_failed"
        assert event["error_code"] == "eval_non_finite"
        assert event["context"]["expression"] == "1 / 0"
