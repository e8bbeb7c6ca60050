from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass
from typing import List, MutableSequence, Sequence, TypeVar

try:  # optional dependency
    import numpy as _np  # type: ignore
except Exception:  # pragma: no cover - optional
    _np = None

T = TypeVar("T")


@dataclass
class RandomSource:
    engine: str

    def choice(self, seq: Sequence[T]) -> T:
        raise NotImplementedError

    def shuffle(self, arr: MutableSequence[T]) -> None:
        raise NotImplementedError

    def shuffled(self, seq: Sequence[T]) -> List[T]:
        out = list(seq)
        self.shuffle(out)
        return out


class PyRandomSource(RandomSource):
    def __init__(self, seed: int | None):
        super().__init__(engine="py_random")
        self._rng = random.Random(seed)

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(list(seq))

    def shuffle(self, arr: MutableSequence[T]) -> None:
        self._rng.shuffle(arr)


class NumpyPCG64Source(RandomSource):  # pragma: no cover - covered when numpy present
    def __init__(self, seed: int | None):
        if _np is None:
            raise RuntimeError("numpy is not installed; install bingopedia-engine[pcg]")
        super().__init__(engine="numpy_pcg64")
        self._rng = _np.random.Generator(_np.random.PCG64(seed))

    def choice(self, seq: Sequence[T]) -> T:
        # index-based so string sequences keep their element type
        return seq[int(self._rng.integers(len(seq)))]

    def shuffle(self, arr: MutableSequence[T]) -> None:
        self._rng.shuffle(arr)


def create_rng(engine: str, seed: int | None) -> RandomSource:
    engine = (engine or "py_random").strip().lower()
    if engine == "py_random":
        return PyRandomSource(seed)
    if engine == "numpy_pcg64":
        return NumpyPCG64Source(seed)
    raise ValueError(f"Unsupported RNG engine: {engine}")


def derive_seed(base_seed: int, index: int, purpose: str) -> int:
    """Derive a per-attempt seed from base seed, index, and purpose using sha256.

    Returns a 63-bit positive integer suitable for seeding common RNGs.
    """
    s = f"{base_seed}|{index}|{purpose}".encode("utf-8")
    digest = hashlib.sha256(s).digest()
    # take first 8 bytes, mask to 63 bits to ensure non-negative
    val = int.from_bytes(digest[:8], byteorder="big") & ((1 << 63) - 1)
    return val
