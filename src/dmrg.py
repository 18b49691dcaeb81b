"""
Two-site DMRG ground-state search.

The driver moves a LocalMPO window across the chain, solves the local
eigenproblem of each two-site block through the LocalOp linear
operator, and splits the optimised block back into MPS tensors with a
truncated SVD.
"""

from __future__ import annotations
import logging
import numpy as np
import scipy.linalg as sla
from scipy.sparse.linalg import eigsh

from .errors import UsageError
from .localmpo import LocalMPO
from .localop import LocalOp
from .mpo import MPO
from .mps import MPS, Direction
from .sweeps import Sweeps, sweep_sequence
from .tensor import Tensor

logger = logging.getLogger(__name__)


def solve_local(
    lop: LocalOp,
    phi: Tensor,
    dense_cutoff: int = 256,
    tol: float = 1e-10
) -> tuple[float, Tensor]:
    """
    Lowest eigenpair of the local operator.

    Parameters
    ----------
    lop : LocalOp
        The local effective Hamiltonian.
    phi : Tensor
        Starting guess; also fixes the index order of the result.
    dense_cutoff : int
        Use dense diagonalisation up to this local dimension.
    tol : float
        eigsh tolerance for larger problems.

    Returns
    -------
    energy : float
        Lowest eigenvalue.
    phi : Tensor
        Normalised eigenvector with the indices of the guess.
    """
    H, C = lop.as_linear_operator(phi)
    n = H.shape[0]
    if n <= dense_cutoff:
        M = H.matmat(np.eye(n, dtype=H.dtype))
        M = 0.5 * (M + M.conj().T)
        w, V = sla.eigh(M)
    else:
        v0 = (phi * C).array
        w, V = eigsh(H, k=1, which='SA', v0=v0, tol=tol)
    energy = float(np.real(w[0]))
    vec = V[:, 0] / np.linalg.norm(V[:, 0])
    new_phi = Tensor.from_array(vec, C.inds[0]) * C
    return energy, new_phi


def dmrg(
    H: MPO,
    psi: MPS,
    sweeps: Sweeps | None = None
) -> tuple[float, MPS]:
    """
    Find the ground state of H starting from psi.

    Parameters
    ----------
    H : MPO
        Hamiltonian.
    psi : MPS
        Initial state on the same sites; it is not modified.
    sweeps : Sweeps, optional
        Accuracy settings. Default: Sweeps().

    Returns
    -------
    energy : float
        Ground-state energy estimate after the last sweep.
    psi : MPS
        The optimised state, centre at site 1.
    """
    sweeps = sweeps if sweeps is not None else Sweeps()
    if sweeps.num_center != 2:
        raise UsageError("dmrg only supports two-site updates (num_center = 2)")
    if H.N < 2:
        raise UsageError("dmrg needs a chain of at least two sites")
    if tuple(H.sites) != tuple(psi.sites):
        raise UsageError("MPO and MPS are defined on different sites")

    psi = psi.copy()
    psi.right_canonicalize()
    steps = sweep_sequence(H.N, sweeps.num_center)
    energy = float("nan")

    with LocalMPO.bound(H, sweeps.num_center) as PH:
        for sw in range(1, sweeps.nsweep + 1):
            maxdim = sweeps.maxdim_at(sw)
            cutoff = sweeps.cutoff_at(sw)
            noise = sweeps.noise_at(sw)
            max_discarded = 0.0
            for k, step in enumerate(steps):
                b = step.b
                PH.position(b, psi)
                phi = psi[b] * psi[b + 1]
                energy, phi = solve_local(
                    PH.lop, phi,
                    dense_cutoff=sweeps.dense_cutoff,
                    tol=sweeps.eigsh_tol
                )
                discarded = psi.svd_bond(
                    b, phi, step.direction,
                    maxdim=maxdim, cutoff=cutoff,
                    noise=noise, local=PH
                )
                max_discarded = max(max_discarded, discarded)
                if logger.isEnabledFor(logging.DEBUG):
                    logger.debug(f"Bond {b}: energy = {energy:.12f}, residual = {PH.delta_phi(phi).norm():.3e}")

                # next step moves the same way: absorb the new orthonormal site
                if k + 1 < len(steps) and steps[k + 1].direction is step.direction:
                    if step.direction is Direction.FROM_LEFT:
                        PH.shift(b, Direction.FROM_LEFT, psi[b])
                    else:
                        PH.shift(b + 1, Direction.FROM_RIGHT, psi[b + 1])

            logger.info(
                f"Sweep {sw}/{sweeps.nsweep}: energy = {energy:.12f}, "
                f"maxdim = {max(psi.bond_dims())}, discarded = {max_discarded:.3e}"
            )

    return energy, psi
