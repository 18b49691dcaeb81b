"""
Index-combiner algebra.

A combiner is a structural tensor whose index set is
(composite, c1, c2, ..., ck). Contracting it with a dense tensor either
merges c1..ck into the composite index or, if the dense tensor already
carries the composite index, splits it back into c1..ck.

The composite index is laid out exactly as the C-order flattening of
(c1, ..., ck): c1 varies slowest. With this convention merging a
contiguous, correctly ordered group of axes and splitting a composite
index are both free reinterpretations of the buffer; only an
out-of-order or non-contiguous group needs a permutation.
"""

from __future__ import annotations
import logging
import numpy as np
from typing import TYPE_CHECKING

from .errors import MissingIndexError, NoContractedIndicesError, UsageError
from .index import Index, IndexSet
from .permutation import Permutation, UNSET
from .storage import CombinerStorage, DenseStorage

if TYPE_CHECKING:
    from .tensor import Tensor

logger = logging.getLogger(__name__)


def combine(
    dense: DenseStorage,
    dis: IndexSet,
    cis: IndexSet
) -> tuple[IndexSet, DenseStorage | None]:
    """
    Contract a dense buffer with a combiner.

    Parameters
    ----------
    dense : DenseStorage
        Buffer of the dense tensor.
    dis : IndexSet
        Indices of the dense tensor.
    cis : IndexSet
        Indices of the combiner, composite index first.

    Returns
    -------
    new_inds : IndexSet
        Index set of the result.
    new_dense : DenseStorage or None
        A freshly permuted buffer, or None when the result is a pure
        reinterpretation of `dense`.
    """
    if cis.rank < 2:
        raise UsageError(f"Combiner needs a composite and at least one constituent, got {cis}")
    cind = cis[0]
    constituents = cis[1:]
    n_c = constituents.rank

    if cind.dim != constituents.size:
        raise UsageError(
            f"Composite index {cind} has dimension {cind.dim}, "
            f"constituents {constituents} multiply to {constituents.size}"
        )

    jc = dis.find(cind)
    if jc >= 0:
        # Uncombine: composite index is replaced by its constituents
        new_inds = IndexSet(list(dis[:jc]) + list(constituents) + list(dis[jc + 1:]))
        return new_inds, None

    J1 = dis.find(constituents[0])
    if J1 < 0:
        raise NoContractedIndicesError(
            "No contracted indices in combiner-tensor product", dis, cis
        )

    # Contiguous and in the same order as on the combiner?
    contig_sameord = True
    c = 1
    j = J1 + 1
    while c < n_c and j < dis.rank:
        if dis[j] != constituents[c]:
            contig_sameord = False
            break
        c += 1
        j += 1
    if c != n_c:
        contig_sameord = False

    if contig_sameord:
        new_inds = IndexSet(list(dis[:J1]) + [cind] + list(dis[J1 + n_c:]))
        return new_inds, None

    P = Permutation(dis.rank)
    ni = 0
    for cons in constituents:
        j = dis.find(cons)
        if j < 0:
            raise MissingIndexError("Combiner: missing index", dis, cis, missing=cons)
        P.set_from_to(j, ni)
        ni += 1

    rest: list[Index] = []
    for j in range(dis.rank):
        if P.dest(j) == UNSET:
            P.set_from_to(j, ni)
            ni += 1
            rest.append(dis[j])

    logger.debug(f"Combiner permuting {dis} with {P}")
    tensor_from = dense.data.reshape(dis.dims)
    permuted = P.apply(tensor_from)
    return IndexSet([cind] + rest), DenseStorage(permuted)


def combiner(*inds: Index, name: str = "cmb") -> 'Tensor':
    """
    Build a combiner tensor grouping `inds` into a new composite index.

    Parameters
    ----------
    *inds : Index
        Constituent indices, slowest-varying first.
    name : str
        Name of the composite index.

    Returns
    -------
    Tensor
        Tensor with combiner storage; its first index is the composite.
    """
    from .tensor import Tensor

    if not inds:
        raise UsageError("combiner requires at least one index")
    dim = int(np.prod([i.dim for i in inds], dtype=np.int64))
    cind = Index(dim, name)
    return Tensor(IndexSet((cind,) + inds), CombinerStorage())


def combined_index(C: 'Tensor') -> Index:
    """The composite index of a combiner tensor."""
    return C.inds[0]
