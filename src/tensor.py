"""
Dense and combiner tensors labelled by identity-bearing indices.

This module provides the Tensor class used throughout the library: a
storage object (dense buffer or combiner marker) together with the
ordered IndexSet that gives the storage its logical shape. Products
contract every index the two operands share.
"""

from __future__ import annotations
import logging
import numpy as np
from numpy.typing import NDArray, DTypeLike
from typing import Iterable, Sequence

try:
    import h5py
    HAS_H5PY = True
except ImportError:
    HAS_H5PY = False

from .errors import UsageError
from .index import Index, IndexSet, IndexVal
from .permutation import Permutation
from . import storage as st
from .storage import CombinerStorage, DenseStorage, StorageKind, QN

logger = logging.getLogger(__name__)


def _share(store: st.Storage) -> st.Storage:
    if store.kind is StorageKind.DENSE:
        return store.alias()
    return store


class Tensor:
    """
    A tensor: an IndexSet plus a storage of one of the StorageKinds.

    Dense buffers are C-ordered with respect to `inds` (first index
    slowest). Operations that do not change the elements (priming,
    reinterpreting combines, conjugating real data) share the buffer
    with their input; see `storage.DenseStorage`.

    Parameters
    ----------
    inds : IndexSet or sequence of Index
        The indices, in buffer order.
    storage : DenseStorage or CombinerStorage, optional
        Defaults to a zero-filled dense buffer.

    Attributes
    ----------
    inds : IndexSet
        The indices of the tensor.
    storage : DenseStorage or CombinerStorage
        The underlying storage.
    """

    def __init__(
        self,
        inds: IndexSet | Iterable[Index],
        storage: st.Storage | None = None
    ):
        inds = inds if isinstance(inds, IndexSet) else IndexSet(inds)
        if storage is None:
            storage = DenseStorage(np.zeros(inds.size))
        if storage.kind is StorageKind.DENSE and storage.data.size != inds.size:
            raise UsageError(
                f"Buffer of size {storage.data.size} does not match indices {inds}"
            )
        self._inds = inds
        self._store = storage

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_array(cls, array: NDArray, *inds: Index) -> 'Tensor':
        """
        Copy `array` into a new tensor; axis k of `array` is `inds[k]`.
        """
        array = np.array(array, copy=True, order="C")
        if array.shape != tuple(i.dim for i in inds):
            raise UsageError(
                f"Array shape {array.shape} does not match indices {IndexSet(inds)}"
            )
        return cls(IndexSet(inds), DenseStorage(array))

    @classmethod
    def zeros(cls, *inds: Index, dtype: DTypeLike = float) -> 'Tensor':
        inds = IndexSet(inds)
        return cls(inds, DenseStorage(np.zeros(inds.size, dtype=dtype)))

    @classmethod
    def random(
        cls,
        *inds: Index,
        rng: np.random.Generator | None = None,
        dtype: DTypeLike = float
    ) -> 'Tensor':
        """Tensor with normally distributed elements."""
        rng = rng if rng is not None else np.random.default_rng()
        inds = IndexSet(inds)
        data = rng.standard_normal(inds.size)
        if np.issubdtype(np.dtype(dtype), np.complexfloating):
            data = data + 1j * rng.standard_normal(inds.size)
        return cls(inds, DenseStorage(data.astype(dtype)))

    @classmethod
    def scalar(cls, value: complex) -> 'Tensor':
        return cls(IndexSet(), DenseStorage(np.array([value])))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def inds(self) -> IndexSet:
        return self._inds

    @property
    def storage(self) -> st.Storage:
        return self._store

    @property
    def kind(self) -> StorageKind:
        return self._store.kind

    @property
    def is_combiner(self) -> bool:
        return self._store.kind is StorageKind.COMBINER

    @property
    def rank(self) -> int:
        return self._inds.rank

    def r(self) -> int:
        return self._inds.rank

    @property
    def dtype(self) -> np.dtype:
        self._require_dense("dtype")
        return self._store.dtype

    @property
    def array(self) -> NDArray:
        """Read-only view of the elements, axes in `inds` order."""
        self._require_dense("array")
        view = self._store.data.reshape(self._inds.dims)
        view.flags.writeable = False
        return view

    def to_array(self, *inds: Index) -> NDArray:
        """Copy of the elements with axes in the order `inds`."""
        if not inds:
            return self.array.copy()
        return self.permute(*inds).array.copy()

    def get(self, *ivals: IndexVal) -> complex:
        """
        Element at the given index values; no arguments for a scalar.
        """
        if self.is_combiner:
            vals = [iv.val for iv in ivals]
        else:
            vals = self._values_in_order(ivals)
        return st.get_element(self._store, self._inds.dims, vals)

    def scalar_value(self) -> complex:
        if self.rank != 0:
            raise UsageError(f"Tensor of rank {self.rank} is not a scalar")
        return self.get()

    def set(self, value: complex, *ivals: IndexVal) -> None:
        """Set one element in place, copying the buffer first if shared."""
        self._require_dense("set")
        vals = self._values_in_order(ivals)
        data = self._store.mutable_data()
        if np.iscomplexobj(value) and not np.iscomplexobj(data):
            data = data.astype(complex)
            self._store = DenseStorage(data)
        pos = np.ravel_multi_index(tuple(vals), self._inds.dims) if vals else 0
        data[pos] = value

    def _values_in_order(self, ivals: Sequence[IndexVal]) -> list[int]:
        if len(ivals) != self.rank:
            raise UsageError(f"Expected {self.rank} index values, got {len(ivals)}")
        vals = [0] * len(ivals)
        for iv in ivals:
            n = self._inds.find(iv.index)
            if n < 0:
                raise UsageError(f"Index {iv.index} not found in {self._inds}")
            vals[n] = iv.val
        return vals

    def _require_dense(self, op: str) -> None:
        if self._store.kind is not StorageKind.DENSE:
            raise UsageError(f"{op} not defined for {self._store.kind.value} storage")

    # ------------------------------------------------------------------
    # Storage-kind dispatched operations
    # ------------------------------------------------------------------

    def norm(self) -> float:
        return st.norm(self._store)

    def is_complex(self) -> bool:
        return st.is_complex(self._store)

    def divergence(self) -> QN:
        return st.divergence(self._store)

    def conj(self) -> 'Tensor':
        return Tensor(self._inds, st.conj(self._store))

    def dag(self) -> 'Tensor':
        return self.conj()

    # ------------------------------------------------------------------
    # Index manipulation
    # ------------------------------------------------------------------

    def prime(self, inc: int = 1, inds: Iterable[Index] | None = None) -> 'Tensor':
        """
        Raise the prime level of all indices, or only of `inds`.
        """
        if inds is None:
            new = self._inds.prime(inc)
        else:
            which = set(inds)
            new = IndexSet(i.prime(inc) if i in which else i for i in self._inds)
        return Tensor(new, _share(self._store))

    def noprime(self) -> 'Tensor':
        return Tensor(self._inds.noprime(), _share(self._store))

    def mapprime(self, plev_old: int, plev_new: int) -> 'Tensor':
        new = IndexSet(
            i.prime(plev_new - plev_old) if i.plev == plev_old else i
            for i in self._inds
        )
        return Tensor(new, _share(self._store))

    def replace_index(self, old: Index, new: Index) -> 'Tensor':
        n = self._inds.find(old)
        if n < 0:
            raise UsageError(f"Index {old} not found in {self._inds}")
        if old.dim != new.dim:
            raise UsageError(f"Cannot replace {old} by {new}: dimensions differ")
        inds = list(self._inds)
        inds[n] = new
        return Tensor(IndexSet(inds), _share(self._store))

    def permute(self, *inds: Index) -> 'Tensor':
        """
        Same tensor with its buffer reordered to the index order `inds`.
        """
        self._require_dense("permute")
        if len(inds) != self.rank:
            raise UsageError(f"permute expects {self.rank} indices, got {len(inds)}")
        P = Permutation(self.rank)
        for dest, index in enumerate(inds):
            source = self._inds.find(index)
            if source < 0:
                raise UsageError(f"Index {index} not found in {self._inds}")
            P.set_from_to(source, dest)
        P.validate()
        if all(P.dest(j) == j for j in range(self.rank)):
            return Tensor(self._inds, self._store.alias())
        return Tensor(IndexSet(inds), DenseStorage(P.apply(self.array)))

    def take_diag(self, index: Index, plev_partner: int = 1) -> 'Tensor':
        """
        Keep only the elements with equal values on `index` and its
        primed partner; the partner is removed from the result.
        """
        self._require_dense("take_diag")
        partner = index.prime(plev_partner)
        a, b = self._inds.find(index), self._inds.find(partner)
        if a < 0 or b < 0:
            raise UsageError(f"take_diag needs {index} and {partner} in {self._inds}")
        diag = np.diagonal(self.array, axis1=a, axis2=b)
        rest = [i for n, i in enumerate(self._inds) if n not in (a, b)]
        return Tensor(IndexSet(rest + [index]), DenseStorage(diag.copy(order="C")))

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def __mul__(self, other):
        if isinstance(other, Tensor):
            from .linalg import tensor_contract
            return tensor_contract(self, other)
        if np.isscalar(other):
            self._require_dense("scalar multiplication")
            return Tensor(self._inds, DenseStorage(self._store.data * other))
        return NotImplemented

    def __rmul__(self, other):
        if np.isscalar(other):
            return self.__mul__(other)
        return NotImplemented

    def __imul__(self, other):
        if isinstance(other, Tensor):
            return self.__mul__(other)
        self._require_dense("scalar multiplication")
        data = self._store.mutable_data()
        if np.iscomplexobj(other) and not np.iscomplexobj(data):
            self._store = DenseStorage(data * other)
        else:
            data *= other
        return self

    def __truediv__(self, other):
        if np.isscalar(other):
            return self * (1.0 / other)
        return NotImplemented

    def __neg__(self) -> 'Tensor':
        return self * -1.0

    def _aligned(self, other: 'Tensor') -> NDArray:
        if set(other.inds) != set(self._inds) or other.rank != self.rank:
            raise UsageError(f"Cannot add tensors with indices {self._inds} and {other.inds}")
        return other.permute(*self._inds).array

    def __add__(self, other: 'Tensor') -> 'Tensor':
        self._require_dense("addition")
        data = self.array + self._aligned(other)
        return Tensor(self._inds, DenseStorage(data))

    def __sub__(self, other: 'Tensor') -> 'Tensor':
        self._require_dense("subtraction")
        data = self.array - self._aligned(other)
        return Tensor(self._inds, DenseStorage(data))

    def copy(self) -> 'Tensor':
        """Deep copy; the result never shares a buffer."""
        if self.is_combiner:
            return Tensor(self._inds, CombinerStorage())
        return Tensor(self._inds, DenseStorage(self._store.data.copy()))

    def __repr__(self) -> str:
        return f"Tensor(kind={self.kind.value}, inds={self._inds})"

    # ------------------------------------------------------------------
    # HDF5 I/O
    # ------------------------------------------------------------------

    def write(self, group) -> None:
        """Write the index set and storage into an h5py group."""
        _write_inds(group, self._inds)
        st.write_storage(group, self._store)

    @classmethod
    def read(cls, group) -> 'Tensor':
        return cls(_read_inds(group), st.read_storage(group))

    def export(self, filename: str) -> None:
        """
        Export the tensor to an HDF5 file.

        Parameters
        ----------
        filename : str
            Path to output file.
        """
        _require_h5py()
        with h5py.File(filename, 'w') as f:
            self.write(f)
        logger.info(f"Tensor exported to {filename}")

    @classmethod
    def load(cls, filename: str) -> 'Tensor':
        _require_h5py()
        with h5py.File(filename, 'r') as f:
            T = cls.read(f)
        logger.info(f"Tensor loaded from {filename}")
        return T


def _require_h5py() -> None:
    if not HAS_H5PY:
        raise ImportError("h5py is required for HDF5 export/load")


def _write_inds(group, inds: IndexSet) -> None:
    group.create_dataset("ids", data=np.array([i.id for i in inds], dtype=np.int64))
    group.create_dataset("dims", data=np.array(inds.dims, dtype=np.int64))
    group.create_dataset("plevs", data=np.array([i.plev for i in inds], dtype=np.int64))
    group.attrs["names"] = [i.name for i in inds]


def _read_inds(group) -> IndexSet:
    ids = np.array(group["ids"])
    dims = np.array(group["dims"])
    plevs = np.array(group["plevs"])
    names = list(group.attrs["names"])
    return IndexSet(
        Index(int(d), str(n), id=int(i), plev=int(p))
        for i, d, p, n in zip(ids, dims, plevs, names)
    )
