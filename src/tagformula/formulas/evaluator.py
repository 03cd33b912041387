"""Evaluation of token sequences.

The token sequence is flattened into a plain arithmetic string (tags
replaced by their bound numbers) which is then parsed by the restricted
grammar in :mod:`tagformula.formulas.parser` and walked in float
arithmetic.  Nothing is ever handed to ``eval``.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Sequence

from lark import Token as LarkToken
from lark import Tree

from tagformula.formulas.errors import (
    ENGINE_ERRORS,
    FormulaError,
    FormulaEvalError,
    FormulaRefError,
)
from tagformula.formulas.parser import parse_expression
from tagformula.logging import EventType, emit_warning
from tagformula.logging.events import EVAL_BAD_BINDING, EVAL_NON_FINITE, EVAL_PARSE_ERROR
from tagformula.tokens import NumberToken, TagToken, Token, format_number

INVALID_EXPRESSION = "Invalid Expression"
ZERO_RESULT = "0"


def build_expression(tokens: Sequence[Token], bindings: Mapping[str, Any]) -> str:
    """Flatten *tokens* into an arithmetic string.

    Tags resolve through *bindings* (unbound labels become ``0``); numbers
    and operands contribute their literal payload.  A negative binding is
    wrapped in parentheses so that ``x ^ 2`` squares the whole value.
    Substitutions are joined by single spaces.

    Raises:
        FormulaRefError: If a bound value is not a finite number.
    """
    parts: list[str] = []
    for token in tokens:
        if isinstance(token, TagToken):
            parts.append(_resolve_tag(token.label, bindings))
        elif isinstance(token, NumberToken):
            parts.append(format_number(token.value))
        else:
            parts.append(token.value)
    return " ".join(parts)


def _resolve_tag(label: str, bindings: Mapping[str, Any]) -> str:
    if label not in bindings:
        return ZERO_RESULT
    raw = bindings[label]
    if isinstance(raw, bool):
        raise FormulaRefError(label)
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise FormulaRefError(label) from exc
    if not math.isfinite(value):
        raise FormulaRefError(label, f"Non-finite binding for tag: {label!r}")
    if value < 0:
        return f"( {format_number(value)} )"
    return format_number(value)


def evaluate_expression(text: str) -> float:
    """Parse and compute an assembled arithmetic string.

    Raises:
        FormulaParseError: On disallowed characters or bad syntax.
        FormulaEvalError: If the result is not a finite real number.
    """
    result = _eval(parse_expression(text))
    if isinstance(result, complex) or not math.isfinite(result):
        raise FormulaEvalError(f"Non-finite result: {result!r}")
    return result


def _eval(node: Tree | LarkToken) -> float:
    """Recursively evaluate a tree node."""
    if isinstance(node, LarkToken):
        return float(node)

    rule = node.data

    if rule == "start":
        return _eval(node.children[0])

    if rule == "number":
        return float(node.children[0])
    if rule == "neg":
        return -_eval(node.children[0])
    if rule == "pos":
        return _eval(node.children[0])

    left = _eval(node.children[0])
    right = _eval(node.children[1])
    if rule == "add":
        return left + right
    if rule == "sub":
        return left - right
    if rule == "mul":
        return left * right
    if rule == "div":
        if right == 0:
            raise ZeroDivisionError("Division by zero in formula")
        return left / right
    if rule == "pow":
        result = left ** right
        if isinstance(result, complex):
            raise FormulaEvalError(f"Complex result for {left!r} ^ {right!r}")
        return result

    raise FormulaError(f"Unknown node type: {rule}")


def format_result(value: float) -> str:
    """Render a computed value for display."""
    return format_number(value)


def evaluate(
    tokens: Sequence[Token],
    bindings: Mapping[str, Any] | None = None,
    *,
    session_id: str | None = None,
) -> str:
    """Compute the display result of a token sequence.

    Args:
        tokens: The committed token sequence.
        bindings: Tag label -> number.  Missing labels count as zero.
        session_id: Attribution for the failure event, if any.

    Returns:
        ``"0"`` for an empty sequence, the rendered number on success, or
        :data:`INVALID_EXPRESSION`.  Never raises for evaluation faults.
    """
    if not tokens:
        return ZERO_RESULT

    text = ""
    try:
        text = build_expression(tokens, bindings or {})
        return format_result(evaluate_expression(text))
    except ENGINE_ERRORS as exc:
        logging.getLogger(__name__).debug("evaluation of %r failed: %s", text, exc)
        emit_warning(
            EventType.evaluation_failed,
            str(exc),
            {"expression": text, "token_count": len(tokens)},
            error_code=_error_code(exc),
            session_id=session_id,
        )
        return INVALID_EXPRESSION


def _error_code(exc: BaseException) -> str:
    if isinstance(exc, FormulaRefError):
        return EVAL_BAD_BINDING
    if isinstance(exc, (FormulaEvalError, ZeroDivisionError, OverflowError)):
        return EVAL_NON_FINITE
    return EVAL_PARSE_ERROR
