"""Token classification and safe arithmetic evaluation.

Public API::

    from tagformula.formulas import classify, evaluate, INVALID_EXPRESSION
"""

from tagformula.formulas.classifier import (
    classify,
    is_number_text,
    is_operand_text,
    parse_number,
    suggestion_query,
)
from tagformula.formulas.errors import (
    ENGINE_ERRORS,
    FormulaError,
    FormulaEvalError,
    FormulaParseError,
    FormulaRefError,
)
from tagformula.formulas.evaluator import (
    INVALID_EXPRESSION,
    build_expression,
    evaluate,
    evaluate_expression,
)
from tagformula.formulas.parser import parse_expression

__all__ = [
    "ENGINE_ERRORS",
    "INVALID_EXPRESSION",
    "FormulaError",
    "FormulaEvalError",
    "FormulaParseError",
    "FormulaRefError",
    "build_expression",
    "classify",
    "evaluate",
    "evaluate_expression",
    "is_number_text",
    "is_operand_text",
    "parse_expression",
    "parse_number",
    "suggestion_query",
]
