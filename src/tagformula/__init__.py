"""tagformula -- interactive formula token engine.

Public API::

    from tagformula import EditController, FormulaStore, classify, evaluate
"""

__version__ = "0.1.0"

from tagformula.autocomplete import AutocompleteCoordinator, AutocompleteState
from tagformula.controller import EditController
from tagformula.formulas import INVALID_EXPRESSION, classify, evaluate
from tagformula.store import FormulaStore
from tagformula.tokens import NumberToken, OperandToken, TagToken, Token

__all__ = [
    "INVALID_EXPRESSION",
    "AutocompleteCoordinator",
    "AutocompleteState",
    "EditController",
    "FormulaStore",
    "NumberToken",
    "OperandToken",
    "TagToken",
    "Token",
    "__version__",
    "classify",
    "evaluate",
]
