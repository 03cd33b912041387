"""Lark-based parser for assembled arithmetic expressions.

The grammar is deliberately small: numeric literals, the binary
operators ``+ - * / ^``, unary ``+``/``-`` and parentheses.  Names,
function calls and anything else are syntax errors.
"""

from __future__ import annotations

import re

from lark import Lark, Tree
from lark.exceptions import LarkError

from tagformula.formulas.errors import FormulaParseError

# LALR(1) grammar.
# Operator precedence (lowest to highest):
#   1. Addition/subtraction: + -
#   2. Multiplication/division: * /
#   3. Unary plus/minus: + -
#   4. Exponentiation: ^ (right-associative)
#   5. Atoms: number, parenthesized expr
GRAMMAR = r"""
start: expr

?expr: addition

?addition: multiplication
    | addition "+" multiplication  -> add
    | addition "-" multiplication  -> sub

?multiplication: unary
    | multiplication "*" unary  -> mul
    | multiplication "/" unary  -> div

?unary: exponentiation
    | "-" unary  -> neg
    | "+" unary  -> pos

?exponentiation: atom
    | atom "^" unary  -> pow

?atom: NUMBER  -> number
    | "(" expr ")"

%import common.NUMBER
%import common.WS
%ignore WS
"""

_parser = Lark(GRAMMAR, parser="lalr", start="start")

# Digits, decimal point, exponent marker, the operator set and whitespace.
_ALLOWED_RE = re.compile(r"^[0-9.eE+\-*/^()\s]*$")


def check_expression_chars(text: str) -> None:
    """Reject text containing anything outside the arithmetic alphabet.

    Raises:
        FormulaParseError: At the first disallowed character.
    """
    if _ALLOWED_RE.match(text):
        return
    for pos, ch in enumerate(text):
        if not _ALLOWED_RE.match(ch):
            raise FormulaParseError(f"Disallowed character {ch!r}", position=pos)


def parse_expression(text: str) -> Tree:
    """Parse an arithmetic expression into a Lark Tree.

    Args:
        text: e.g. ``"1000 + 1"`` or ``"( 2 + 3 ) ^ 2"``.

    Raises:
        FormulaParseError: If the text is empty, contains a disallowed
            character, or has invalid syntax.
    """
    text = text.strip()
    if not text:
        raise FormulaParseError("Empty expression", position=0)
    check_expression_chars(text)
    try:
        return _parser.parse(text)
    except LarkError as exc:
        pos = getattr(exc, "column", None)
        raise FormulaParseError(str(exc), position=pos) from exc
