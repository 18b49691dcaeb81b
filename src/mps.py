"""
Matrix Product States.

This module provides the MPS class: the chain state whose `project_op`
absorbs one site of an MPO into a left or right environment. It also
carries the gauge operations (right-canonicalisation, two-site SVD
split) a sweeping algorithm needs.

Site tensors A_j carry the indices (l_{j-1}, s_j, l_j); the boundary
tensors lack their outer link.
"""

from __future__ import annotations
import logging
import numpy as np
from numpy.typing import NDArray
from enum import Enum
from typing import Iterator, Sequence

from .errors import UsageError
from .index import Index
from .combiner import combiner
from .linalg import density_matrix_split, qr_split, svd_split
from .tensor import Tensor

logger = logging.getLogger(__name__)


class Direction(Enum):
    """Side from which an environment is grown."""
    FROM_LEFT = "Fromleft"
    FROM_RIGHT = "Fromright"


class MPS:
    """
    Matrix Product State on sites 1..N.

    Parameters
    ----------
    tensors : sequence of Tensor
        Site tensors A_1..A_N.
    sites : sequence of Index
        Physical index of each site; must be the same Index objects as
        the MPO it is used with.

    Attributes
    ----------
    center : int or None
        Orthogonality centre when known.
    """

    def __init__(self, tensors: Sequence[Tensor], sites: Sequence[Index]):
        if len(tensors) != len(sites):
            raise UsageError(
                f"MPS needs one site index per tensor, got {len(tensors)} and {len(sites)}"
            )
        self._A = list(tensors)
        self._sites = tuple(sites)
        self.center: int | None = None

    @classmethod
    def random(
        cls,
        sites: Sequence[Index],
        bond_dim: int = 4,
        rng: np.random.Generator | None = None
    ) -> 'MPS':
        """
        Random normalised MPS, right-canonical with centre at site 1.

        Parameters
        ----------
        sites : sequence of Index
            Physical indices.
        bond_dim : int
            Maximum link dimension.
        rng : numpy Generator, optional
            Source of randomness.
        """
        rng = rng if rng is not None else np.random.default_rng()
        N = len(sites)
        dims = [s.dim for s in sites]
        links = []
        for j in range(1, N):
            chi = min(bond_dim, int(np.prod(dims[:j])), int(np.prod(dims[j:])))
            links.append(Index(chi, f"l{j}"))

        tensors = []
        for j, s in enumerate(sites, start=1):
            inds = []
            if j > 1:
                inds.append(links[j - 2])
            inds.append(s)
            if j < N:
                inds.append(links[j - 1])
            tensors.append(Tensor.random(*inds, rng=rng))

        psi = cls(tensors, sites)
        psi.right_canonicalize()
        return psi

    @classmethod
    def product_state(cls, sites: Sequence[Index], states: Sequence[int]) -> 'MPS':
        """Product state with site j in basis state `states[j-1]`."""
        N = len(sites)
        links = [Index(1, f"l{j}") for j in range(1, N)]
        tensors = []
        for j, (s, v) in enumerate(zip(sites, states), start=1):
            inds = []
            if j > 1:
                inds.append(links[j - 2])
            inds.append(s)
            if j < N:
                inds.append(links[j - 1])
            T = Tensor.zeros(*inds)
            T.set(1.0, *[i(v if i == s else 0) for i in inds])
            tensors.append(T)
        psi = cls(tensors, sites)
        psi.center = 1
        return psi

    @property
    def N(self) -> int:
        return len(self._A)

    @property
    def sites(self) -> tuple[Index, ...]:
        return self._sites

    def __len__(self) -> int:
        return len(self._A)

    def __getitem__(self, j: int) -> Tensor:
        if not 1 <= j <= self.N:
            raise IndexError(f"MPS site {j} out of range 1..{self.N}")
        return self._A[j - 1]

    def __setitem__(self, j: int, T: Tensor) -> None:
        if not 1 <= j <= self.N:
            raise IndexError(f"MPS site {j} out of range 1..{self.N}")
        self._A[j - 1] = T
        self.center = None

    def __iter__(self) -> Iterator[Tensor]:
        return iter(self._A)

    def copy(self) -> 'MPS':
        psi = MPS(self._A, self._sites)
        psi.center = self.center
        return psi

    def link_index(self, j: int) -> Index:
        """Link between sites j and j+1."""
        common = self[j].inds.common(self[j + 1].inds)
        if len(common) != 1:
            raise UsageError(f"Sites {j} and {j + 1} share {len(common)} indices")
        return common[0]

    def bond_dims(self) -> list[int]:
        return [self.link_index(j).dim for j in range(1, self.N)]

    # ------------------------------------------------------------------
    # Environment absorption
    # ------------------------------------------------------------------

    def project_op(
        self,
        j: int,
        direction: Direction,
        env: Tensor | None,
        W: Tensor
    ) -> Tensor:
        """
        Absorb site j into an environment: E * A_j * W * conj(A_j').

        Parameters
        ----------
        j : int
            Site to absorb.
        direction : Direction
            FROM_LEFT if `env` covers sites < j, FROM_RIGHT if it covers
            sites > j.
        env : Tensor or None
            Current environment; None is the trivial one at a chain end.
        W : Tensor
            MPO tensor at site j.

        Returns
        -------
        Tensor
            Environment including site j. Inputs are not modified.
        """
        if not isinstance(direction, Direction):
            raise UsageError(f"Unknown direction {direction!r}")
        A = self[j]
        E = A if env is None else env * A
        E = E * W
        return E * A.conj().prime()

    # ------------------------------------------------------------------
    # Gauge
    # ------------------------------------------------------------------

    def right_canonicalize(self) -> None:
        """
        Make sites 2..N right-orthonormal and normalise site 1.
        """
        for j in range(self.N, 1, -1):
            A = self[j]
            left_link = self.link_index(j - 1)
            right_inds = A.inds.uncommon([left_link])
            Q, R = qr_split(A, right_inds, link_name=f"l{j - 1}")
            self._A[j - 1] = Q
            self._A[j - 2] = self[j - 1] * R
        self._A[0] = self[1] / self[1].norm()
        self.center = 1

    def svd_bond(
        self,
        b: int,
        phi: Tensor,
        direction: Direction,
        *,
        maxdim: int | None = None,
        cutoff: float = 0.0,
        noise: float = 0.0,
        local=None
    ) -> float:
        """
        Replace sites b, b+1 by the SVD split of the two-site tensor phi.

        For FROM_LEFT site b becomes left-orthonormal and the centre moves
        to b+1; for FROM_RIGHT site b+1 becomes right-orthonormal and the
        centre is b.

        With a positive `noise` and a `local` operator (LocalMPO or
        LocalOp positioned at b), the orthonormal site is taken from the
        reduced density matrix of phi plus `noise` times the operator's
        `delta_rho` correction.

        Returns
        -------
        float
            Discarded weight.
        """
        left_inds = [i for i in phi.inds if i in self[b].inds]
        if noise > 0.0 and local is not None:
            if direction is Direction.FROM_LEFT:
                C = combiner(*left_inds, name="rho")
            else:
                C = combiner(*phi.inds.uncommon(left_inds), name="rho")
            U, X, discarded = density_matrix_split(
                phi, C, local.delta_rho(phi, C, direction), noise,
                maxdim=maxdim, cutoff=cutoff, link_name=f"l{b}"
            )
            # the noisy basis need not contain phi exactly
            X = X * (phi.norm() / X.norm())
            A, B = (U, X) if direction is Direction.FROM_LEFT else (X, U)
        else:
            absorb = "right" if direction is Direction.FROM_LEFT else "left"
            A, B, discarded = svd_split(
                phi, left_inds,
                maxdim=maxdim, cutoff=cutoff,
                link_name=f"l{b}", absorb=absorb
            )
        self._A[b - 1] = A
        self._A[b] = B
        self.center = b + 1 if direction is Direction.FROM_LEFT else b
        logger.debug(f"Bond {b} split {direction.value}, link dimension {self.link_index(b).dim}")
        return discarded

    # ------------------------------------------------------------------
    # Measurements
    # ------------------------------------------------------------------

    def inner(self, other: 'MPS') -> complex:
        """<self|other>."""
        E = None
        for j in range(1, self.N + 1):
            A = self[j]
            bra = A.conj().prime(inds=A.inds.uncommon(self._sites))
            E = bra * other[j] if E is None else E * bra * other[j]
        return E.scalar_value()

    def norm(self) -> float:
        return float(np.sqrt(np.real(self.inner(self))))

    def expect(self, H) -> float:
        """<psi|H|psi> / <psi|psi> for an MPO H."""
        E = None
        for j in range(1, self.N + 1):
            E = self.project_op(j, Direction.FROM_LEFT, E, H[j])
        return float(np.real(E.scalar_value())) / self.norm() ** 2

    def to_dense(self) -> NDArray:
        """State vector of length d^N, site 1 slowest."""
        T = self[1]
        for A in self._A[1:]:
            T = T * A
        return T.to_array(*self._sites).reshape(-1)
