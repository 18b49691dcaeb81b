"""
Local effective operator.

A LocalOp is a view over two environments and the MPO tensors of the
exposed sites between them. It acts on a local wavefunction phi (the
contraction of the exposed MPS sites) without ever forming the local
Hamiltonian as a matrix:

    .---     ---.
    |   |   |   |
    L - W - W - R
    |   |   |   |
    '---phi-----'
"""

from __future__ import annotations
import numpy as np
from scipy.sparse.linalg import LinearOperator
from typing import Sequence

from .combiner import combiner
from .errors import UsageError
from .index import Index, IndexSet
from .mps import Direction
from .tensor import Tensor


class LocalOp:
    """
    Matrix-free operator L * W_b * ... * W_{b+nc-1} * R.

    The environments may be None at the chain ends. The operator holds
    references only; it is refreshed by `LocalMPO` whenever its window
    moves.
    """

    def __init__(self):
        self._L: Tensor | None = None
        self._R: Tensor | None = None
        self._ops: tuple[Tensor, ...] = ()

    def update(
        self,
        ops: Sequence[Tensor],
        L: Tensor | None = None,
        R: Tensor | None = None
    ) -> None:
        self._ops = tuple(ops)
        self._L = L
        self._R = R

    @property
    def is_null(self) -> bool:
        return not self._ops

    @property
    def L(self) -> Tensor | None:
        return self._L

    @property
    def R(self) -> Tensor | None:
        return self._R

    @property
    def ops(self) -> tuple[Tensor, ...]:
        return self._ops

    def _require_set(self) -> None:
        if self.is_null:
            raise UsageError("LocalOp has not been set")

    def _apply(self, phi: Tensor) -> Tensor:
        self._require_set()
        T = phi if self._L is None else self._L * phi
        for W in self._ops:
            T = T * W
        if self._R is not None:
            T = T * self._R
        return T.mapprime(1, 0)

    def product(self, phi: Tensor) -> Tensor:
        """H phi, with the indices of phi in phi's order."""
        return self._apply(phi).permute(*phi.inds)

    def expect(self, phi: Tensor) -> float:
        """Real part of <phi|H|phi> (phi is not normalised)."""
        val = (phi.conj() * self._apply(phi)).scalar_value()
        return float(np.real(val))

    def delta_phi(self, phi: Tensor) -> Tensor:
        """Residual H phi - E phi, with E = <phi|H|phi> / <phi|phi>."""
        energy = self.expect(phi) / phi.norm() ** 2
        return self.product(phi) - phi * energy

    def delta_rho(self, phi: Tensor, C: Tensor, direction: Direction) -> Tensor:
        """
        Perturbative correction to the reduced density matrix of phi.

        The edge of the operator on the `direction` side (environment and
        first exposed MPO tensor for FROM_LEFT, last exposed MPO tensor
        and environment for FROM_RIGHT) is applied to phi. The result is
        grouped with C and traced over everything except the composite
        index, the open MPO link included.

        Parameters
        ----------
        phi : Tensor
            Local wavefunction.
        C : Tensor
            Combiner over the indices of phi on the `direction` side.
        direction : Direction
            Side whose density matrix is corrected.

        Returns
        -------
        Tensor
            Hermitian positive semidefinite tensor with indices (c, c'),
            c being the composite index of C.
        """
        self._require_set()
        if direction is Direction.FROM_LEFT:
            E, W = self._L, self._ops[0]
        elif direction is Direction.FROM_RIGHT:
            E, W = self._R, self._ops[-1]
        else:
            raise UsageError(f"Unknown direction {direction!r}")
        D = phi if E is None else E * phi
        D = (D * W).mapprime(1, 0) * C
        c = C.inds[0]
        return D * D.conj().prime(inds=[c])

    def local_inds(self) -> IndexSet:
        """Indices of the local wavefunction space, left to right."""
        self._require_set()
        inds = []
        if self._L is not None:
            inds += _ket_inds(self._L)
        for W in self._ops:
            inds += _ket_inds(W)
        if self._R is not None:
            inds += _ket_inds(self._R)
        return IndexSet(inds)

    def size(self) -> int:
        """Dimension of the local wavefunction space."""
        return self.local_inds().size

    def diag(self) -> Tensor:
        """
        Diagonal of H in the local basis, indexed by `local_inds()`.
        """
        inds = self.local_inds()
        parts = []
        if self._L is not None:
            parts.append(_diag_part(self._L))
        for W in self._ops:
            parts.append(_diag_part(W))
        if self._R is not None:
            parts.append(_diag_part(self._R))
        D = parts[0]
        for P in parts[1:]:
            D = D * P
        return D.permute(*inds)

    def as_linear_operator(self, phi: Tensor) -> tuple[LinearOperator, Tensor]:
        """
        scipy LinearOperator acting on phi flattened to a vector.

        Returns
        -------
        op : LinearOperator
            The local operator on vectors of length phi.inds.size.
        C : Tensor
            Combiner grouping phi's indices; `phi * C` gives the vector
            and `Tensor.from_array(v, C.inds[0]) * C` maps one back.
        """
        C = combiner(*phi.inds, name="vec")
        cind = C.inds[0]
        dtypes = [phi.dtype] + [W.dtype for W in self._ops]
        dtypes += [E.dtype for E in (self._L, self._R) if E is not None]
        dtype = np.result_type(*dtypes)

        def matvec(v):
            x = Tensor.from_array(np.asarray(v).reshape(-1), cind) * C
            y = self._apply(x) * C
            return np.array(y.array)

        return LinearOperator((cind.dim, cind.dim), matvec=matvec, dtype=dtype), C


def _ket_inds(T: Tensor) -> list[Index]:
    """Unprimed indices of T whose primed partner is also on T."""
    return [i for i in T.inds if i.plev == 0 and i.prime() in T.inds]


def _diag_part(T: Tensor) -> Tensor:
    for index in _ket_inds(T):
        T = T.take_diag(index)
    return T
