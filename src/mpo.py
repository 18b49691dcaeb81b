"""
Matrix Product Operators acting on chains of sites.

This module provides the MPO class, the read-only chain operator the
environment cache projects, together with a builder for the spin-1/2
Heisenberg XXZ chain.

Each site tensor W_j carries the indices (w_{j-1}, s_j', s_j, w_j), the
boundary tensors lacking their outer link. The unprimed site index is
the operator's input (ket side) and the primed one its output.
"""

from __future__ import annotations
import logging
import numpy as np
from numpy.typing import NDArray
from typing import Iterator, Sequence

try:
    import h5py
    HAS_H5PY = True
except ImportError:
    HAS_H5PY = False

from .errors import UsageError
from .index import Index
from .tensor import Tensor

logger = logging.getLogger(__name__)


# Spin-1/2 operators
Sz = np.array([[0.5, 0.0], [0.0, -0.5]])
Sp = np.array([[0.0, 1.0], [0.0, 0.0]])
Sm = Sp.T.copy()
Id = np.eye(2)


def spin_half_sites(N: int) -> list[Index]:
    """Physical indices s1..sN of dimension 2."""
    return [Index(2, f"s{j}") for j in range(1, N + 1)]


class MPO:
    """
    Chain operator: an ordered, read-only sequence of site tensors.

    Sites are numbered 1..N.

    Parameters
    ----------
    tensors : sequence of Tensor
        Site tensors W_1..W_N.
    sites : sequence of Index
        Unprimed physical index of each site.
    """

    def __init__(self, tensors: Sequence[Tensor], sites: Sequence[Index]):
        if len(tensors) != len(sites):
            raise UsageError(
                f"MPO needs one site index per tensor, got {len(tensors)} and {len(sites)}"
            )
        self._W = tuple(tensors)
        self._sites = tuple(sites)

    @property
    def N(self) -> int:
        return len(self._W)

    @property
    def sites(self) -> tuple[Index, ...]:
        return self._sites

    def __len__(self) -> int:
        return len(self._W)

    def __getitem__(self, j: int) -> Tensor:
        if not 1 <= j <= self.N:
            raise IndexError(f"MPO site {j} out of range 1..{self.N}")
        return self._W[j - 1]

    def __iter__(self) -> Iterator[Tensor]:
        return iter(self._W)

    def site(self, j: int) -> Index:
        return self._sites[j - 1]

    def to_dense(self) -> NDArray:
        """
        Full operator as a (d^N, d^N) matrix, rows indexed by the primed
        (output) site indices, site 1 slowest.
        """
        T = self._W[0]
        for W in self._W[1:]:
            T = T * W
        rows = [s.prime() for s in self._sites]
        cols = list(self._sites)
        D = int(np.prod([s.dim for s in self._sites]))
        return T.to_array(*rows, *cols).reshape(D, D)

    def export(self, filename: str) -> None:
        """
        Export MPO to HDF5 file.

        Parameters
        ----------
        filename : str
            Path to output file.
        """
        if not HAS_H5PY:
            raise ImportError("h5py is required for HDF5 export/load")
        with h5py.File(filename, 'w') as f:
            f.attrs['N'] = self.N
            f.create_dataset("site_ids", data=np.array([s.id for s in self._sites], dtype=np.int64))
            f.create_dataset("site_dims", data=np.array([s.dim for s in self._sites], dtype=np.int64))
            f.attrs["site_names"] = [s.name for s in self._sites]
            for j, W in enumerate(self._W, start=1):
                W.write(f.create_group(f"W{j}"))
        logger.info(f"MPO exported to {filename}")

    @classmethod
    def load(cls, filename: str) -> 'MPO':
        """
        Load MPO from HDF5 file.

        Parameters
        ----------
        filename : str
            Path to input file.

        Returns
        -------
        MPO
            The loaded operator.
        """
        if not HAS_H5PY:
            raise ImportError("h5py is required for HDF5 export/load")
        with h5py.File(filename, 'r') as f:
            N = int(f.attrs['N'])
            sites = [
                Index(int(d), str(n), id=int(i))
                for i, d, n in zip(
                    np.array(f["site_ids"]), np.array(f["site_dims"]), f.attrs["site_names"]
                )
            ]
            tensors = [Tensor.read(f[f"W{j}"]) for j in range(1, N + 1)]
        logger.info(f"MPO loaded from {filename}")
        return cls(tensors, sites)


def heisenberg_mpo(
    sites: Sequence[Index],
    J: float = 1.0,
    Jz: float = 1.0,
    h: float = 0.0
) -> MPO:
    """
    MPO of the spin-1/2 XXZ chain with open boundaries.

    H = sum_j [ J/2 (S+_j S-_{j+1} + S-_j S+_{j+1}) + Jz Sz_j Sz_{j+1} ]
        + h sum_j Sz_j

    Parameters
    ----------
    sites : sequence of Index
        Physical indices (dimension 2).
    J, Jz : float
        In-plane and longitudinal couplings.
    h : float
        Longitudinal field.

    Returns
    -------
    MPO
        The Hamiltonian with bond dimension 5.
    """
    N = len(sites)
    if N < 1:
        raise UsageError("heisenberg_mpo needs at least one site")
    k = 5
    W = np.zeros((k, 2, 2, k))
    W[0, :, :, 0] = Id
    W[1, :, :, 0] = Sp
    W[2, :, :, 0] = Sm
    W[3, :, :, 0] = Sz
    W[4, :, :, 0] = h * Sz
    W[4, :, :, 1] = J / 2 * Sm
    W[4, :, :, 2] = J / 2 * Sp
    W[4, :, :, 3] = Jz * Sz
    W[4, :, :, 4] = Id

    links = [Index(k, f"w{j}") for j in range(1, N)]
    tensors = []
    for j, s in enumerate(sites, start=1):
        if N == 1:
            tensors.append(Tensor.from_array(W[4, :, :, 0], s.prime(), s))
        elif j == 1:
            tensors.append(Tensor.from_array(W[4], s.prime(), s, links[0]))
        elif j == N:
            tensors.append(Tensor.from_array(W[..., 0], links[-1], s.prime(), s))
        else:
            tensors.append(
                Tensor.from_array(W, links[j - 2], s.prime(), s, links[j - 1])
            )
    return MPO(tensors, sites)
