"""
Tensor network library for index combiners and MPO environments.

A Python library for contracting tensors labelled by identity-bearing
indices, merging and splitting indices with combiners, and caching the
environments of a Matrix Product Operator projected onto a Matrix
Product State so that sweeping algorithms such as DMRG run in linear
time per sweep.

Main Classes
------------
Index, IndexSet
    Identity-bearing tensor legs and ordered sets of them.
Tensor
    Dense or combiner tensor over an IndexSet.
MPO, MPS
    Chain operator and chain state.
LocalMPO
    Sliding-window environment cache.
LocalOp
    Matrix-free local effective operator.

Key Functions
-------------
combiner
    Build a combiner tensor grouping indices into one.
tensor_contract
    Contract two tensors over their shared indices.
heisenberg_mpo
    MPO of the spin-1/2 XXZ chain.
dmrg
    Two-site DMRG ground-state search.

Example
-------
>>> from tensorchain import MPS, Sweeps, dmrg, heisenberg_mpo, spin_half_sites
>>>
>>> sites = spin_half_sites(8)
>>> H = heisenberg_mpo(sites, J=1.0, Jz=1.0)
>>> psi0 = MPS.random(sites, bond_dim=4)
>>> energy, psi = dmrg(H, psi0, Sweeps(nsweep=4, maxdim=[8, 16, 32]))
"""

__version__ = "0.1.0"

from .errors import (
    TensorChainError,
    UsageError,
    NullCacheError,
    ShiftBoundaryError,
    PositionNotSetError,
    UnsupportedPositionError,
    MissingIndexError,
    NoContractedIndicesError,
)

# Indices and storage
from .index import Index, IndexVal, IndexSet
from .permutation import Permutation
from .storage import StorageKind, QN, DenseStorage, CombinerStorage

# Tensors
from .combiner import combine, combiner, combined_index
from .tensor import Tensor

# Linear algebra operations
from .linalg import (
    tensor_contract,
    svd_split,
    qr_split,
    density_matrix_split,
    truncation_rank,
)

# Chains
from .mpo import MPO, heisenberg_mpo, spin_half_sites
from .mps import MPS, Direction

# Environments
from .localop import LocalOp
from .localmpo import LocalMPO

# Sweeping
from .sweeps import SweepStep, Sweeps, sweep_sequence
from .dmrg import dmrg, solve_local


__all__ = [
    # Version
    "__version__",
    # Errors
    "TensorChainError",
    "UsageError",
    "NullCacheError",
    "ShiftBoundaryError",
    "PositionNotSetError",
    "UnsupportedPositionError",
    "MissingIndexError",
    "NoContractedIndicesError",
    # Indices and storage
    "Index",
    "IndexVal",
    "IndexSet",
    "Permutation",
    "StorageKind",
    "QN",
    "DenseStorage",
    "CombinerStorage",
    # Tensors
    "combine",
    "combiner",
    "combined_index",
    "Tensor",
    # Linear algebra
    "tensor_contract",
    "svd_split",
    "qr_split",
    "density_matrix_split",
    "truncation_rank",
    # Chains
    "MPO",
    "heisenberg_mpo",
    "spin_half_sites",
    "MPS",
    "Direction",
    # Environments
    "LocalOp",
    "LocalMPO",
    # Sweeping
    "SweepStep",
    "Sweeps",
    "sweep_sequence",
    "dmrg",
    "solve_local",
]
