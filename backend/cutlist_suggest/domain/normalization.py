"""Key normalization — canonical forms for every field used in a lookup key.

Every pattern lookup goes through these functions. Two spellings a person
would call identical (case, quote style, stray whitespace, ``992mm`` vs
``992.0 mm``) must land on the same key, otherwise learning splits into
patterns that can never be aggregated.

Usage:
    from cutlist_suggest.domain.normalization import create_pattern_key

    create_pattern_key("door", '100x200 ', "Frame", "990mm")  # "DOOR|100X200|FRAME|990"
"""

import math
import re
from typing import Optional

# Straight, typographic and prime quote marks
_QUOTES_RE = re.compile("[\"'`´‘’‚‛“”„‟′″]")
_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)?")

KEY_SEPARATOR = "|"


def normalize(text: Optional[str]) -> str:
    """Uppercase, strip quotes, trim, and collapse internal whitespace.

    Examples:
        >>> normalize('  door  "A" ')
        'DOOR A'
        >>> normalize("Frame’s   top")
        'FRAMES TOP'
        >>> normalize(None)
        ''
    """
    if not text:
        return ""
    cleaned = _QUOTES_RE.sub("", str(text))
    return _WHITESPACE_RE.sub(" ", cleaned).strip().upper()


def normalize_profile(text: Optional[str]) -> str:
    """Profiles use plain normalization."""
    return normalize(text)


def normalize_measurement(text: Optional[str]) -> str:
    """Reduce a measurement to its rounded integer value.

    The first number in the text is taken (``,`` accepted as decimal
    separator) and rounded half-up. Text without any number falls back to
    :func:`normalize`.

    Examples:
        >>> normalize_measurement("992mm")
        '992'
        >>> normalize_measurement("992.0 MM")
        '992'
        >>> normalize_measurement("99,6 cm")
        '100'
        >>> normalize_measurement("full length")
        'FULL LENGTH'
    """
    if text is None:
        return ""
    match = _NUMBER_RE.search(str(text))
    if not match:
        return normalize(text)
    value = float(match.group(0).replace(",", "."))
    return str(int(math.floor(value + 0.5)))


def create_context_key(product_name: Optional[str], size: Optional[str]) -> str:
    """``PRODUCT|SIZE``"""
    return f"{normalize(product_name)}{KEY_SEPARATOR}{normalize(size)}"


def create_pattern_key(
    product_name: Optional[str],
    size: Optional[str],
    profile: Optional[str],
    measurement: Optional[str],
) -> str:
    """``PRODUCT|SIZE|PROFILE|MEASUREMENT`` — the unique identity of a pattern."""
    return KEY_SEPARATOR.join([
        create_context_key(product_name, size),
        normalize_profile(profile),
        normalize_measurement(measurement),
    ])


def split_context_key(context_key: str) -> tuple[str, str]:
    """Return ``(product, size)`` from a stored context string; extra parts are ignored."""
    parts = (context_key or "").split(KEY_SEPARATOR)
    product = parts[0] if parts else ""
    size = parts[1] if len(parts) > 1 else ""
    return product, size
