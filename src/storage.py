"""
Storage kinds backing a Tensor.

The set of storage kinds is closed: dense numeric buffers and structural
combiner markers. Each operation that depends on the kind is a single
function looking up its implementation by `StorageKind` tag.

Dense buffers are flat, C-ordered (first index slowest) and shared
between tensors through an explicit ownership handle. Any in-place write
must go through `DenseStorage.mutable_data`, which copies the buffer
first when it is shared.
"""

from __future__ import annotations
import numpy as np
from numpy.typing import NDArray
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence, Union

from .errors import UsageError


class StorageKind(Enum):
    DENSE = "Dense"
    COMBINER = "Combiner"


@dataclass(frozen=True)
class QN:
    """
    Quantum number. Only the trivial (empty) value is used here.
    """
    values: tuple[int, ...] = ()

    def is_trivial(self) -> bool:
        return not any(self.values)


class _Block:
    """Shared handle: one numpy buffer and the number of storages using it."""
    __slots__ = ("array", "owners")

    def __init__(self, array: NDArray):
        self.array = array
        self.owners = 1


class DenseStorage:
    """
    Flat numeric buffer with copy-on-write sharing.

    Parameters
    ----------
    data : ndarray
        Element buffer; it is flattened (as a view when possible) and
        taken over by the storage.
    """

    kind = StorageKind.DENSE

    def __init__(self, data: NDArray):
        self._block = _Block(np.asarray(data).reshape(-1))

    @classmethod
    def _from_block(cls, block: _Block) -> 'DenseStorage':
        store = cls.__new__(cls)
        store._block = block
        return store

    def __del__(self):
        block = getattr(self, "_block", None)
        if block is not None:
            block.owners -= 1

    @property
    def data(self) -> NDArray:
        """The flat buffer. Treat as read-only; see `mutable_data`."""
        return self._block.array

    @property
    def dtype(self) -> np.dtype:
        return self._block.array.dtype

    @property
    def owners(self) -> int:
        return self._block.owners

    def alias(self) -> 'DenseStorage':
        """A second storage sharing this buffer."""
        self._block.owners += 1
        return DenseStorage._from_block(self._block)

    def is_unique(self) -> bool:
        return self._block.owners == 1

    def mutable_data(self) -> NDArray:
        """Writable flat buffer, detached from other owners first if shared."""
        if self._block.owners > 1:
            self._block.owners -= 1
            self._block = _Block(self._block.array.copy())
        return self._block.array

    def __repr__(self) -> str:
        return f"DenseStorage(size={self.data.size}, dtype={self.dtype}, owners={self.owners})"


class CombinerStorage:
    """
    Structural marker with no buffer.

    The owning tensor's index set is (composite, *constituents).
    """

    kind = StorageKind.COMBINER

    def __repr__(self) -> str:
        return "CombinerStorage()"


Storage = Union[DenseStorage, CombinerStorage]


def _dispatch(table: dict[StorageKind, Callable], store: Storage, op: str) -> Callable:
    try:
        return table[store.kind]
    except KeyError:
        raise UsageError(f"{op} not defined for {store.kind.value} storage") from None


# ---------------------------------------------------------------------------
# Element access
# ---------------------------------------------------------------------------

def _dense_get_element(store: DenseStorage, dims: Sequence[int], vals: Sequence[int]) -> Any:
    if len(vals) != len(dims):
        raise UsageError(f"Expected {len(dims)} index values, got {len(vals)}")
    if not dims:
        return store.data[0]
    return store.data[np.ravel_multi_index(tuple(vals), tuple(dims))]


def _combiner_get_element(store: CombinerStorage, dims: Sequence[int], vals: Sequence[int]) -> Any:
    if len(vals) != 0:
        raise UsageError("Element access not defined for non-scalar combiner storage")
    return 1.0


_GET_ELEMENT = {
    StorageKind.DENSE: _dense_get_element,
    StorageKind.COMBINER: _combiner_get_element,
}


def get_element(store: Storage, dims: Sequence[int], vals: Sequence[int]) -> Any:
    """Element at the (0-based) values `vals` of axes with sizes `dims`."""
    return _dispatch(_GET_ELEMENT, store, "get_element")(store, dims, vals)


# ---------------------------------------------------------------------------
# Norm, conjugation, complex check, divergence
# ---------------------------------------------------------------------------

_NORM = {
    StorageKind.DENSE: lambda s: float(np.linalg.norm(s.data)),
    StorageKind.COMBINER: lambda s: 0.0,
}


def norm(store: Storage) -> float:
    return _dispatch(_NORM, store, "norm")(store)


def _dense_conj(store: DenseStorage) -> DenseStorage:
    if np.iscomplexobj(store.data):
        return DenseStorage(np.conj(store.data))
    return store.alias()


_CONJ = {
    StorageKind.DENSE: _dense_conj,
    StorageKind.COMBINER: lambda s: s,
}


def conj(store: Storage) -> Storage:
    return _dispatch(_CONJ, store, "conj")(store)


_IS_COMPLEX = {
    StorageKind.DENSE: lambda s: bool(np.iscomplexobj(s.data)),
    StorageKind.COMBINER: lambda s: False,
}


def is_complex(store: Storage) -> bool:
    return _dispatch(_IS_COMPLEX, store, "is_complex")(store)


_DIVERGENCE = {
    StorageKind.DENSE: lambda s: QN(),
    StorageKind.COMBINER: lambda s: QN(),
}


def divergence(store: Storage) -> QN:
    return _dispatch(_DIVERGENCE, store, "divergence")(store)


# ---------------------------------------------------------------------------
# HDF5 serialization
# ---------------------------------------------------------------------------

def _dense_write(group: Any, store: DenseStorage) -> None:
    group.attrs["type"] = StorageKind.DENSE.value
    group.create_dataset("data", data=store.data)


def _combiner_write(group: Any, store: CombinerStorage) -> None:
    group.attrs["type"] = StorageKind.COMBINER.value


_WRITE = {
    StorageKind.DENSE: _dense_write,
    StorageKind.COMBINER: _combiner_write,
}


def write_storage(group: Any, store: Storage) -> None:
    """Write the type tag and, for dense storage, the buffer into an h5py group."""
    _dispatch(_WRITE, store, "write_storage")(group, store)


def read_storage(group: Any) -> Storage:
    kind = StorageKind(group.attrs["type"])
    if kind is StorageKind.COMBINER:
        return CombinerStorage()
    return DenseStorage(np.array(group["data"]))
