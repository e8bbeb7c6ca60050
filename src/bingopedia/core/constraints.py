"""Group constraint tracking for puzzle generation."""

from __future__ import annotations

from collections import Counter
from typing import Dict, Mapping, Optional


class GroupConstraintChecker:
    """Tracks per-group usage against ``maxPerGame`` caps during one walk."""

    def __init__(self, caps: Optional[Mapping[str, int]] = None):
        self.caps: Dict[str, int] = dict(caps or {})
        self.usage: Counter[str] = Counter()

    def can_accept(self, group: Optional[str]) -> bool:
        """Categories without a group, or with an unknown group, are uncapped."""
        if group is None or group not in self.caps:
            return True
        return self.usage[group] < self.caps[group]

    def accept(self, group: Optional[str]) -> None:
        if group is None:
            return
        self.usage[group] += 1

    def relaxed(self, extra: int) -> "GroupConstraintChecker":
        return GroupConstraintChecker({name: cap + extra for name, cap in self.caps.items()})

    def snapshot(self) -> Dict[str, int]:
        return dict(self.usage)
