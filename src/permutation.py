"""
Axis permutations for dense tensor buffers.
"""

from __future__ import annotations
import numpy as np
from numpy.typing import NDArray

from .errors import UsageError


UNSET = -1


class Permutation:
    """
    Bijection from source axis position to destination axis position.

    Entries start out as `UNSET` and are assigned with `set_from_to`.

    Parameters
    ----------
    rank : int
        Number of axes.
    """

    def __init__(self, rank: int):
        self._dest = np.full(rank, UNSET, dtype=np.intp)

    @property
    def rank(self) -> int:
        return len(self._dest)

    def set_from_to(self, source: int, dest: int) -> None:
        self._dest[source] = dest

    def dest(self, source: int) -> int:
        return int(self._dest[source])

    def is_complete(self) -> bool:
        return bool(np.all(self._dest != UNSET))

    def validate(self) -> None:
        """Raise UsageError unless every axis maps to exactly one destination."""
        if not self.is_complete():
            raise UsageError(f"Permutation has unassigned entries: {self._dest}")
        if not np.array_equal(np.sort(self._dest), np.arange(self.rank)):
            raise UsageError(f"Permutation is not a bijection: {self._dest}")

    def axes(self) -> NDArray[np.intp]:
        """
        Source axis for each destination, i.e. the `axes` argument of
        `np.transpose` that realises this permutation.
        """
        self.validate()
        return np.argsort(self._dest)

    def apply(self, array: NDArray) -> NDArray:
        """Return a C-contiguous copy of `array` with its axes permuted."""
        return np.transpose(array, self.axes()).copy(order="C")

    def __repr__(self) -> str:
        return f"Permutation({self._dest.tolist()})"
