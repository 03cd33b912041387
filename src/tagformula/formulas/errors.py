"""Error types for formula parsing and evaluation."""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for all formula-related errors."""


class FormulaParseError(FormulaError):
    """Syntax error in an assembled expression.

    Attributes:
        position: Character position where the error was detected.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaRefError(FormulaError):
    """A tag binding that cannot be used as a number.

    Attributes:
        ref_name: The tag label.
    """

    def __init__(self, ref_name: str, message: str | None = None) -> None:
        self.ref_name = ref_name
        super().__init__(message or f"Unusable binding for tag: {ref_name!r}")


class FormulaEvalError(FormulaError):
    """Arithmetic that produced no finite real result."""


# Everything the evaluator may raise while computing a result.
ENGINE_ERRORS = (
    FormulaError,
    ZeroDivisionError,
    OverflowError,
    ValueError,
    TypeError,
    RecursionError,
)
