from __future__ import annotations

from collections import OrderedDict
from typing import Generic, Iterator, Optional, TypeVar

V = TypeVar("V")


class BoundedCache(Generic[V]):
    """Insertion-ordered cache that evicts its oldest entries past ``max_size``.

    Reads do not refresh an entry's position.
    """

    def __init__(self, max_size: int = 200):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self._data: "OrderedDict[str, V]" = OrderedDict()
        self.evictions = 0

    def get(self, key: str) -> Optional[V]:
        return self._data.get(key)

    def set(self, key: str, value: V) -> None:
        self._data[key] = value
        while len(self._data) > self.max_size:
            self._data.popitem(last=False)
            self.evictions += 1

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)
