"""
Inscription curse classification and number assignment.

Blessed inscriptions are numbered upwards from zero, cursed inscriptions
downwards from minus one. Both sequences are dense and follow genesis order,
so the next number of a class only depends on the numbers currently assigned
to that class.
"""

import re
from typing import Optional

UNKNOWN_CURSE = "unknown"


def normalize_curse_type(curse_type) -> Optional[str]:
    """Normalize an upstream curse tag ("DuplicateField", "duplicate-field") to snake_case"""
    if curse_type is None:
        return None
    if isinstance(curse_type, dict):
        # Tagged enum form, e.g. {"Generation": 1}
        if not curse_type:
            return None
        curse_type = next(iter(curse_type))
    curse_type = str(curse_type).strip()
    if not curse_type:
        return None
    curse_type = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", curse_type)
    return re.sub(r"[\s\-]+", "_", curse_type).lower()


def classify_curse(curse_type=None, number_hint: Optional[int] = None) -> Optional[str]:
    """
    Return the curse type of a reveal, or None when it is blessed.

    A reveal is cursed when the event source flags an anomalous encoding or
    reports a negative inscription number.
    """
    normalized = normalize_curse_type(curse_type)
    if normalized:
        return normalized
    if number_hint is not None and number_hint < 0:
        return UNKNOWN_CURSE
    return None


def next_inscription_number(
    cursed: bool,
    current_max: Optional[int],
    current_min: Optional[int],
    hint: Optional[int] = None,
) -> int:
    """
    Next number for a reveal.

    Args:
        cursed: Whether the reveal is cursed
        current_max: Highest blessed number currently assigned (None if none)
        current_min: Lowest cursed number currently assigned (None if none)
        hint: Number reported by the event source; used as the base of an
            empty class when its sign matches the class

    Returns:
        The number to assign
    """
    if cursed:
        if current_min is not None:
            return current_min - 1
        if hint is not None and hint < 0:
            return hint
        return -1

    if current_max is not None:
        return current_max + 1
    if hint is not None and hint >= 0:
        return hint
    return 0
