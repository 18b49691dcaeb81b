"""
Linear algebra operations on tensors.

This module provides tensor contraction (dense-dense and dense-combiner)
and the SVD/QR factorisations used to move the orthogonality centre of
an MPS. Factorisations group indices into matrix rows and columns with
combiners.
"""

from __future__ import annotations
import logging
import numpy as np
from numpy.typing import NDArray
import scipy.linalg as sla
from typing import Sequence

from .combiner import combine, combiner
from .errors import UsageError
from .index import Index, IndexSet
from .storage import DenseStorage
from .tensor import Tensor

logger = logging.getLogger(__name__)


def tensor_contract(A: Tensor, B: Tensor) -> Tensor:
    """
    Contract two tensors over every index they share.

    If one operand is a combiner the product is routed through
    `combiner.combine`, whichever side the combiner is on. When the
    combine is a pure reinterpretation the result shares the dense
    operand's buffer.

    Parameters
    ----------
    A : Tensor
        First tensor.
    B : Tensor
        Second tensor.

    Returns
    -------
    Tensor
        Uncontracted indices of A (in order) followed by those of B.
    """
    if A.is_combiner and B.is_combiner:
        raise UsageError("Product of two combiners is not supported")
    if B.is_combiner:
        return _contract_combiner(A, B)
    if A.is_combiner:
        return _contract_combiner(B, A)

    x_ind = []
    y_ind = []
    for n, index in enumerate(A.inds):
        m = B.inds.find(index)
        if m >= 0:
            x_ind.append(n)
            y_ind.append(m)

    data = np.tensordot(A.array, B.array, axes=(x_ind, y_ind))
    new_inds = (
        [i for n, i in enumerate(A.inds) if n not in x_ind] +
        [i for m, i in enumerate(B.inds) if m not in y_ind]
    )
    return Tensor(IndexSet(new_inds), DenseStorage(np.ascontiguousarray(data)))


def _contract_combiner(T: Tensor, C: Tensor) -> Tensor:
    new_inds, new_store = combine(T.storage, T.inds, C.inds)
    if new_store is None:
        new_store = T.storage.alias()
    return Tensor(new_inds, new_store)


def _as_matrix(
    T: Tensor,
    left_inds: Sequence[Index]
) -> tuple[NDArray, Tensor, Tensor]:
    """Group `left_inds` into rows and the remaining indices into columns."""
    right_inds = T.inds.uncommon(left_inds)
    if not left_inds or not right_inds:
        raise UsageError(
            f"Cannot factorise {T.inds} with row indices {IndexSet(left_inds)}"
        )
    Cl = combiner(*left_inds, name="row")
    Cr = combiner(*right_inds, name="col")
    M = T * Cl * Cr
    mat = M.permute(Cl.inds[0], Cr.inds[0]).array
    return mat, Cl, Cr


def truncation_rank(
    S: NDArray,
    maxdim: int | None = None,
    cutoff: float = 0.0
) -> tuple[int, float]:
    """
    Number of singular values to keep and the discarded weight.

    Keeps the fewest values whose discarded squared weight, relative to
    the total, does not exceed `cutoff`, capped at `maxdim`.
    """
    p = S ** 2
    total = p.sum()
    if total == 0:
        return 1, 0.0
    tail = np.append(np.cumsum(p[::-1])[::-1] / total, 0.0)
    m = max(int(np.argmax(tail <= cutoff)), 1)
    if maxdim is not None:
        m = min(m, maxdim)
    return m, float(tail[m])


def svd_split(
    T: Tensor,
    left_inds: Sequence[Index],
    *,
    maxdim: int | None = None,
    cutoff: float = 0.0,
    link_name: str = "l",
    absorb: str = "right"
) -> tuple[Tensor, Tensor, float]:
    """
    Factorise T = A * B by a truncated SVD.

    Parameters
    ----------
    T : Tensor
        Tensor to split.
    left_inds : sequence of Index
        Indices going to A; the rest go to B.
    maxdim : int, optional
        Maximum dimension of the new link index.
    cutoff : float
        Maximum discarded relative weight.
    link_name : str
        Name of the new link index.
    absorb : {"right", "left"}
        Which factor receives the singular values. The other is an
        isometry.

    Returns
    -------
    A : Tensor
        Indices `left_inds` then the link.
    B : Tensor
        The link then the remaining indices of T.
    discarded : float
        Discarded relative weight.
    """
    mat, Cl, Cr = _as_matrix(T, left_inds)
    U, S, Vh = sla.svd(mat, full_matrices=False)
    m, discarded = truncation_rank(S, maxdim, cutoff)
    logger.debug(f"SVD keeps {m} of {len(S)} singular values, discarded weight {discarded:.3e}")
    U, S, Vh = U[:, :m], S[:m], Vh[:m, :]

    if absorb == "right":
        Vh = S[:, None] * Vh
    elif absorb == "left":
        U = U * S[None, :]
    else:
        raise ValueError(f"Unknown absorb option: {absorb}")

    link = Index(m, link_name)
    A = Tensor.from_array(U, Cl.inds[0], link) * Cl
    B = Tensor.from_array(Vh, link, Cr.inds[0]) * Cr
    return A, B, discarded


def qr_split(
    T: Tensor,
    left_inds: Sequence[Index],
    *,
    link_name: str = "l"
) -> tuple[Tensor, Tensor]:
    """
    Factorise T = Q * R with Q an isometry over `left_inds`.

    Returns
    -------
    Q : Tensor
        Indices `left_inds` then the link.
    R : Tensor
        The link then the remaining indices of T.
    """
    mat, Cl, Cr = _as_matrix(T, left_inds)
    Q, R = sla.qr(mat, mode='economic')
    link = Index(Q.shape[1], link_name)
    return (
        Tensor.from_array(Q, Cl.inds[0], link) * Cl,
        Tensor.from_array(R, link, Cr.inds[0]) * Cr,
    )


def density_matrix_split(
    T: Tensor,
    C: Tensor,
    delta_rho: Tensor | None = None,
    noise: float = 0.0,
    *,
    maxdim: int | None = None,
    cutoff: float = 0.0,
    link_name: str = "l"
) -> tuple[Tensor, Tensor, float]:
    """
    Factorise T = U * X from the reduced density matrix of the indices
    grouped by the combiner C, optionally perturbed by a noise term.

    The reduced density matrix rho = T T^dagger (over the composite index
    of C) is normalised to unit trace; when `noise` is positive,
    `noise * delta_rho / tr(delta_rho)` is added before diagonalising.
    U holds the leading eigenvectors of rho and X = U^dagger T.

    Parameters
    ----------
    T : Tensor
        Tensor to split.
    C : Tensor
        Combiner over the indices that go to U.
    delta_rho : Tensor, optional
        Correction with indices (c, c') where c is the composite index
        of C.
    noise : float
        Weight of the correction.
    maxdim : int, optional
        Maximum dimension of the new link index.
    cutoff : float
        Maximum discarded weight of rho.
    link_name : str
        Name of the new link index.

    Returns
    -------
    U : Tensor
        Isometry: the indices of C then the link.
    X : Tensor
        The link then the remaining indices of T.
    discarded : float
        Discarded weight of rho.
    """
    c = C.inds[0]
    rest = T.inds.uncommon(C.inds[1:])
    if not rest:
        raise UsageError(f"Cannot split {T.inds}: no indices left outside {C.inds}")
    Cr = combiner(*rest, name="col")
    mat = (T * C * Cr).permute(c, Cr.inds[0]).array

    rho = mat @ mat.conj().T
    rho = rho / np.trace(rho).real
    if delta_rho is not None and noise > 0.0:
        D = delta_rho.to_array(c, c.prime())
        tr = np.trace(D).real
        if tr > 0.0:
            rho = rho + noise * D / tr
            rho = rho / np.trace(rho).real
    rho = 0.5 * (rho + rho.conj().T)

    w, U = sla.eigh(rho)
    w, U = np.clip(w[::-1], 0.0, None), U[:, ::-1]
    m, _ = truncation_rank(np.sqrt(w), maxdim, cutoff)
    m = min(m, *mat.shape)
    discarded = float(w[m:].sum() / w.sum())
    logger.debug(f"Density matrix keeps {m} of {len(w)} states, discarded weight {discarded:.3e}")
    U = U[:, :m]

    link = Index(m, link_name)
    Ut = Tensor.from_array(U, c, link) * C
    X = Tensor.from_array(U.conj().T @ mat, link, Cr.inds[0]) * Cr
    return Ut, X, discarded
