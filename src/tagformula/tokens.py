"""Token model for interactive formulas.

A formula is an ordered tuple of tokens, read left to right.  Each token
is one of three frozen variants discriminated on ``kind``:

- ``NumberToken``  -- a finite numeric literal
- ``OperandToken`` -- an operator or parenthesis from :data:`OPERAND_SYMBOLS`
- ``TagToken``     -- a named variable reference, resolved at evaluation time

The sequence functions in this module are pure: they return a new tuple,
or the *same* tuple object when the call is a no-op.
"""

from __future__ import annotations

import math
import uuid
from typing import Annotated, Any, Iterable, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

OPERATORS = ("+", "-", "*", "/", "^")
PARENTHESES = ("(", ")")
OPERAND_SYMBOLS = OPERATORS + PARENTHESES

DEFAULT_TAG_PREFIX = "@"

OperandSymbol = Literal["+", "-", "*", "/", "^", "(", ")"]


class TokenLoadError(ValueError):
    """A bulk-loaded token list violates sequence invariants.

    Attributes:
        token_id: The offending id.
    """

    def __init__(self, token_id: str) -> None:
        self.token_id = token_id
        super().__init__(f"Duplicate token id: {token_id!r}")


def new_token_id() -> str:
    """Return a fresh opaque token id."""
    return f"item_{uuid.uuid4().hex}"


class _TokenBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=new_token_id, min_length=1)


class NumberToken(_TokenBase):
    """A finite numeric literal."""

    kind: Literal["number"] = "number"
    value: float = Field(allow_inf_nan=False)


class OperandToken(_TokenBase):
    """An operator or parenthesis."""

    kind: Literal["operand"] = "operand"
    value: OperandSymbol


class TagToken(_TokenBase):
    """A variable reference, displayed by its label."""

    kind: Literal["tag"] = "tag"
    label: str = Field(min_length=1)


Token = Annotated[
    Union[NumberToken, OperandToken, TagToken],
    Field(discriminator="kind"),
]

TokenSequence = tuple[Token, ...]

_TOKEN_LIST = TypeAdapter(list[Token])


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def format_number(value: float) -> str:
    """Render a number the way it reads in a formula.

    Integral values drop the fractional part (``2.0`` -> ``"2"``); other
    values use the shortest round-trip representation.
    """
    if value == 0:
        return "0"
    if float(value).is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(float(value))


def token_text(token: Token, tag_prefix: str = DEFAULT_TAG_PREFIX) -> str:
    """Return the editable text for *token*.

    Tags come back with the tag prefix so that re-classifying the text
    yields a tag again.
    """
    if isinstance(token, TagToken):
        return f"{tag_prefix}{token.label}"
    if isinstance(token, NumberToken):
        return format_number(token.value)
    return token.value


# ---------------------------------------------------------------------------
# Sequence transformations
# ---------------------------------------------------------------------------


def append_token(seq: TokenSequence, token: Token) -> TokenSequence:
    """Return *seq* with *token* appended.

    Raises:
        TokenLoadError: If *seq* already holds a token with the same id.
    """
    if any(t.id == token.id for t in seq):
        raise TokenLoadError(token.id)
    return seq + (token,)


def remove_token(seq: TokenSequence, token_id: str) -> TokenSequence:
    """Return *seq* without the token whose id is *token_id*.

    Unknown ids leave the sequence unchanged.
    """
    if not any(t.id == token_id for t in seq):
        return seq
    return tuple(t for t in seq if t.id != token_id)


def remove_last(seq: TokenSequence) -> TokenSequence:
    """Return *seq* without its last token; empty stays empty."""
    if not seq:
        return seq
    return seq[:-1]


def update_token(
    seq: TokenSequence, token_id: str, patch: Mapping[str, Any]
) -> TokenSequence:
    """Replace the label of the tag token *token_id*.

    Only ``TagToken.label`` is editable after commit.  Patches on numbers
    or operands, unknown ids, patches without a ``label`` key, and blank
    labels all leave the sequence unchanged.
    """
    label = patch.get("label")
    if not isinstance(label, str) or not label.strip():
        return seq
    label = label.strip()

    for idx, token in enumerate(seq):
        if token.id != token_id:
            continue
        if not isinstance(token, TagToken) or token.label == label:
            return seq
        replaced = token.model_copy(update={"label": label})
        return seq[:idx] + (replaced,) + seq[idx + 1:]
    return seq


def load_tokens(raw: Iterable[Token | Mapping[str, Any]]) -> TokenSequence:
    """Validate a full token list for bulk load.

    Accepts token models or plain dicts (as produced by
    ``FormulaStore.export()``).  Dicts without an ``id`` get a fresh one.

    Raises:
        pydantic.ValidationError: If a token violates its kind's invariants.
        TokenLoadError: If two tokens share an id.
    """
    items = [t.model_dump() if isinstance(t, BaseModel) else dict(t) for t in raw]
    tokens = tuple(_TOKEN_LIST.validate_python(items))
    seen: set[str] = set()
    for token in tokens:
        if token.id in seen:
            raise TokenLoadError(token.id)
        seen.add(token.id)
    return tokens


def is_finite_number(value: Any) -> bool:
    """True if *value* is a real, finite number (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
