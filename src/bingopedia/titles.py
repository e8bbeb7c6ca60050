from __future__ import annotations

import re
from typing import Optional

_WHITESPACE = re.compile(r"\s+")
_UNDERSCORES = re.compile(r"_+")


def normalize(raw: Optional[str]) -> str:
    """Comparison form of an article title.

    "New York", "new_york" and "  New   York " all map to "new_york".
    """
    if not raw:
        return ""
    value = _WHITESPACE.sub("_", raw.strip())
    value = _UNDERSCORES.sub("_", value).strip("_")
    return value.lower()


def display_title(raw: Optional[str]) -> str:
    """Human-facing form: original casing, single spaces instead of underscores."""
    if not raw:
        return ""
    return " ".join(raw.replace("_", " ").split())


def same_article(a: Optional[str], b: Optional[str]) -> bool:
    key = normalize(a)
    return bool(key) and key == normalize(b)
