"""
Identity-bearing tensor indices and ordered index sets.

An Index is a labelled dimension. Two indices are the same leg of a
network if and only if they share identity and prime level; the
dimension and name are carried along but never used for matching.
"""

from __future__ import annotations
import numpy as np
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator, overload


_id_rng = np.random.default_rng()


def _new_id() -> int:
    return int(_id_rng.integers(1, 2 ** 62))


@dataclass(frozen=True, eq=False)
class Index:
    """
    A tensor leg with a unique identity.

    Attributes
    ----------
    dim : int
        Size of the dimension.
    name : str
        Label used when printing.
    id : int
        Identity; a fresh random value unless given explicitly.
    plev : int
        Prime level, distinguishing e.g. ket and bra copies of a leg.
    """
    dim: int
    name: str = "i"
    id: int = field(default_factory=_new_id)
    plev: int = 0

    def __post_init__(self):
        if self.dim < 1:
            raise ValueError(f"Index dimension must be positive, got {self.dim}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Index):
            return NotImplemented
        return self.id == other.id and self.plev == other.plev

    def __hash__(self) -> int:
        return hash((self.id, self.plev))

    def __repr__(self) -> str:
        primes = "'" * self.plev
        return f"({self.name},{self.dim}){primes}"

    def __call__(self, val: int) -> 'IndexVal':
        return IndexVal(self, val)

    def prime(self, inc: int = 1) -> 'Index':
        return replace(self, plev=self.plev + inc)

    def noprime(self) -> 'Index':
        return replace(self, plev=0)


@dataclass(frozen=True)
class IndexVal:
    """An index fixed to a single (0-based) value."""
    index: Index
    val: int

    def __post_init__(self):
        if not 0 <= self.val < self.index.dim:
            raise ValueError(
                f"Value {self.val} out of range for index {self.index}"
            )


class IndexSet:
    """
    Immutable ordered sequence of indices.

    Entries need not be distinct in general, but the combiner algebra
    assumes the indices it looks up occur at most once.
    """

    __slots__ = ("_inds",)

    def __init__(self, inds: Iterable[Index] = ()):
        self._inds = tuple(inds)

    @property
    def rank(self) -> int:
        return len(self._inds)

    def r(self) -> int:
        return len(self._inds)

    @property
    def dims(self) -> tuple[int, ...]:
        return tuple(i.dim for i in self._inds)

    @property
    def size(self) -> int:
        """Total number of elements of a dense tensor with these indices."""
        return int(np.prod(self.dims, dtype=np.int64))

    def find(self, index: Index) -> int:
        """Position of `index`, or -1 if it is absent."""
        for n, i in enumerate(self._inds):
            if i == index:
                return n
        return -1

    def prime(self, inc: int = 1) -> 'IndexSet':
        return IndexSet(i.prime(inc) for i in self._inds)

    def noprime(self) -> 'IndexSet':
        return IndexSet(i.noprime() for i in self._inds)

    def common(self, other: 'IndexSet') -> list[Index]:
        """Indices of self that also occur in other, in self's order."""
        return [i for i in self._inds if i in other]

    def uncommon(self, other: Iterable[Index]) -> list[Index]:
        """Indices of self that do not occur in other, in self's order."""
        other = other if isinstance(other, IndexSet) else IndexSet(other)
        return [i for i in self._inds if i not in other]

    def __len__(self) -> int:
        return len(self._inds)

    def __iter__(self) -> Iterator[Index]:
        return iter(self._inds)

    def __contains__(self, index: object) -> bool:
        return index in self._inds

    @overload
    def __getitem__(self, key: int) -> Index: ...
    @overload
    def __getitem__(self, key: slice) -> 'IndexSet': ...

    def __getitem__(self, key):
        if isinstance(key, slice):
            return IndexSet(self._inds[key])
        return self._inds[key]

    def __add__(self, other: Iterable[Index]) -> 'IndexSet':
        return IndexSet(self._inds + tuple(other))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, IndexSet):
            return self._inds == other._inds
        if isinstance(other, (tuple, list)):
            return self._inds == tuple(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._inds)

    def __repr__(self) -> str:
        return "IndexSet[" + ", ".join(repr(i) for i in self._inds) + "]"
