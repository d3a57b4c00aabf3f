"""
Shared helpers: key normalization and tolerant numeric coercion.

Every lookup in the engine (class names, feature names, skills, weapon
proficiencies) goes through normalize_key so that "Sleight of Hand",
"sleight-of-hand" and "Prestidigitação" style inputs compare the same way.
"""

import math
import re
import unicodedata
from typing import Any, List


_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def fold_text(text: Any) -> str:
    """Casefold and strip accents ("Clérigo" -> "clerigo")."""
    if text is None:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(text).casefold())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_key(text: Any) -> str:
    """Fold text and drop every non-alphanumeric character."""
    return _NON_ALNUM.sub("", fold_text(text))


def to_int(value: Any, default: int = 0) -> int:
    """
    Coerce a loosely-typed value to int.

    Accepts ints, floats, numeric strings ("12", " +3 ", "2.0") and bools.
    Anything else returns the default.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return default
        return int(number) if math.isfinite(number) else default
    return default


def to_float(value: Any, default: float = 0.0) -> float:
    """Coerce a loosely-typed value to a finite float."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", "."))
        except ValueError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default


def ability_mod(score: Any) -> int:
    """Calculate ability modifier from score (malformed scores count as 10)."""
    return (to_int(score, 10) - 10) // 2


def format_bonus(value: int) -> str:
    """Render a modifier with its sign: 3 -> "+3", -1 -> "-1"."""
    return f"+{value}" if value >= 0 else str(value)


def str_list(value: Any) -> List[str]:
    """Coerce a list (or comma separated string) into a list of unique non-blank strings."""
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple, set)):
        return []
    out: List[str] = []
    for v in value:
        text = str(v).strip() if v is not None else ""
        if text and text not in out:
            out.append(text)
    return out
