"""
Exception hierarchy for tensorchain.

Every failure in the library reflects a programming error in how the
engine is driven; there are no transient or retriable errors.
"""

from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .index import Index, IndexSet


class TensorChainError(Exception):
    """Base class for all tensorchain errors."""


class UsageError(TensorChainError, ValueError):
    """A precondition of the called operation was violated."""


class NullCacheError(UsageError):
    """Operation called on a LocalMPO that is not bound to an MPO."""


class ShiftBoundaryError(UsageError):
    """LocalMPO.shift called away from the current cursor."""


class PositionNotSetError(UsageError):
    """The LocalMPO window does not currently expose a single bond."""


class UnsupportedPositionError(UsageError):
    """The requested window needs an environment that is not cached."""


class MissingIndexError(TensorChainError):
    """
    A combiner constituent is absent from the dense tensor.

    Attributes
    ----------
    dense_inds : IndexSet
        Index set of the dense operand.
    combiner_inds : IndexSet
        Index set of the combiner operand.
    missing : Index or None
        The offending index, when known.
    """

    def __init__(
        self,
        message: str,
        dense_inds: 'IndexSet',
        combiner_inds: 'IndexSet',
        missing: 'Index | None' = None
    ):
        self.dense_inds = dense_inds
        self.combiner_inds = combiner_inds
        self.missing = missing
        detail = (
            f"{message}\n"
            f"  IndexSet of dense tensor = {dense_inds}\n"
            f"  IndexSet of combiner = {combiner_inds}"
        )
        if missing is not None:
            detail += f"\n  Missing index: {missing}"
        super().__init__(detail)


class NoContractedIndicesError(MissingIndexError):
    """The dense tensor shares no index with the combiner."""
