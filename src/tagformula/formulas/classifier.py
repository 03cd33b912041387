"""Classification of free text into formula tokens.

Rules, first match wins:

1. Blank text is EMPTY (``None``).
2. An exact operator or parenthesis becomes an ``OperandToken``.
3. A complete finite decimal literal becomes a ``NumberToken``.
4. Tag prefix followed by more text becomes a ``TagToken`` of the rest.
5. Anything else becomes a ``TagToken`` of the whole text.
"""

from __future__ import annotations

import math
import re

from tagformula.tokens import (
    DEFAULT_TAG_PREFIX,
    OPERAND_SYMBOLS,
    NumberToken,
    OperandToken,
    TagToken,
    Token,
)

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


def is_operand_text(text: str) -> bool:
    return text.strip() in OPERAND_SYMBOLS


def parse_number(text: str) -> float | None:
    """Return the value of *text* if it is a complete finite decimal."""
    text = text.strip()
    if not _NUMBER_RE.match(text):
        return None
    value = float(text)
    if not math.isfinite(value):
        return None
    return value


def is_number_text(text: str) -> bool:
    return parse_number(text) is not None


def strip_tag_prefix(text: str, tag_prefix: str = DEFAULT_TAG_PREFIX) -> str:
    if tag_prefix and text.startswith(tag_prefix):
        return text[len(tag_prefix):]
    return text


def suggestion_query(text: str, tag_prefix: str = DEFAULT_TAG_PREFIX) -> str:
    """Return the part of pending *text* that suggestion lookups match on.

    If the tag prefix occurs in the text, the query is what follows its
    last occurrence; otherwise the whole text.  Always trimmed.
    """
    if tag_prefix and tag_prefix in text:
        return text[text.rfind(tag_prefix) + len(tag_prefix):].strip()
    return text.strip()


def classify(text: str, tag_prefix: str = DEFAULT_TAG_PREFIX) -> Token | None:
    """Classify *text* into a fresh token, or ``None`` when blank.

    Args:
        text: Pending text as typed.
        tag_prefix: Marker that explicitly starts a tag reference.

    Returns:
        A new token with a fresh id, or ``None`` (EMPTY).
    """
    text = text.strip()
    if not text:
        return None

    if text in OPERAND_SYMBOLS:
        return OperandToken(value=text)

    value = parse_number(text)
    if value is not None:
        return NumberToken(value=value)

    label = strip_tag_prefix(text, tag_prefix).strip()
    if label:
        return TagToken(label=label)

    return TagToken(label=text)
