"""
Sliding-window environment cache for an MPO projected onto an MPS.

LocalMPO keeps the partial contractions ("environments") of an MPO
sandwiched between an MPS and its conjugate:

      .----...---                ----...--.
      |  |     |      |      |     |      |
      W1-W2-..Wj-1 - Wj - Wj+1 -- Wj+2..-WN
      |  |     |      |      |     |      |
      '----...---                ----...--'

Slot k of the cache holds either a left environment (sites 1..k) or a
right environment (sites k..N). Slots 0 and N+1 are the trivial
environments at the chain ends. The cursors satisfy
left_limit < right_limit, and the sites strictly between them are the
exposed window. After `position(b, psi)` the window is exactly the
num_center sites b..b+num_center-1, and the LocalOp built from the two
boundary environments and the exposed MPO tensors is ready for a
local solver.

Environments are built one site at a time as the window moves, so a
full sweep costs O(N) absorptions.
"""

from __future__ import annotations
import logging
import weakref
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Protocol

from .errors import (
    NullCacheError,
    PositionNotSetError,
    ShiftBoundaryError,
    UnsupportedPositionError,
    UsageError,
)
from .localop import LocalOp
from .mpo import MPO
from .mps import Direction
from .tensor import Tensor

logger = logging.getLogger(__name__)


class ChainState(Protocol):
    """What LocalMPO needs from a chain state."""

    def project_op(
        self,
        j: int,
        direction: Direction,
        env: Tensor | None,
        W: Tensor
    ) -> Tensor: ...


class _Side(Enum):
    LEFT = "left"
    RIGHT = "right"


class LocalMPO:
    """
    Environment cache exposing num_center sites of an MPO.

    The MPO is borrowed, not owned: the cache keeps a weak reference and
    every operation fails with NullCacheError once the MPO is gone. A
    cache constructed without an MPO is unbound ("null") until `bind`
    is called.

    Parameters
    ----------
    op : MPO, optional
        Chain operator to project.
    num_center : int
        Number of exposed sites, at least 1.

    Attributes
    ----------
    left_limit : int
        Last slot holding a valid left environment.
    right_limit : int
        First slot holding a valid right environment.
    """

    def __init__(self, op: MPO | None = None, num_center: int = 2):
        self._op_ref: weakref.ref | None = None
        self._PH: list[Tensor | None] = []
        self._sides: list[_Side | None] = []
        self._LHlim = -1
        self._RHlim = -1
        self._nc = 2
        self._lop = LocalOp()
        self.num_center = num_center
        if op is not None:
            self.bind(op)

    @classmethod
    @contextmanager
    def bound(cls, op: MPO, num_center: int = 2) -> Iterator['LocalMPO']:
        """
        Cache usable only inside a `with` block over which `op` is alive.
        """
        cache = cls(op, num_center)
        try:
            yield cache
        finally:
            cache.release()

    def bind(self, op: MPO) -> None:
        """Bind to `op` and reset to the maximal window."""
        self._op_ref = weakref.ref(op)
        self._PH = [None] * (op.N + 2)
        self._sides = [None] * (op.N + 2)
        self._lop = LocalOp()
        self.reset()

    def release(self) -> None:
        """Return to the unbound state, dropping all environments."""
        self._op_ref = None
        self._PH = []
        self._sides = []
        self._LHlim = -1
        self._RHlim = -1
        self._lop = LocalOp()

    @property
    def is_null(self) -> bool:
        return self._op_ref is None or self._op_ref() is None

    def _op(self) -> MPO:
        op = self._op_ref() if self._op_ref is not None else None
        if op is None:
            raise NullCacheError("LocalMPO is null")
        return op

    def reset(self) -> None:
        """Maximal window: nothing cached."""
        op = self._op()
        self._LHlim = 0
        self._RHlim = op.N + 1

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def num_center(self) -> int:
        return self._nc

    @num_center.setter
    def num_center(self, val: int) -> None:
        if val < 1:
            raise UsageError(f"num_center must be set >= 1, got {val}")
        self._nc = val

    @property
    def left_limit(self) -> int:
        return self._LHlim

    @property
    def right_limit(self) -> int:
        return self._RHlim

    @property
    def N(self) -> int:
        return self._op().N

    @property
    def lop(self) -> LocalOp:
        return self._lop

    @property
    def L(self) -> Tensor | None:
        """Left environment at the current left cursor."""
        self._op()
        return self._PH[self._LHlim]

    @property
    def R(self) -> Tensor | None:
        """Right environment at the current right cursor."""
        self._op()
        return self._PH[self._RHlim]

    def current_bond(self) -> int:
        """
        Site b such that sites b..b+num_center-1 are exposed.

        Raises
        ------
        PositionNotSetError
            If the window is not exactly num_center sites wide.
        """
        self._op()
        if self._RHlim - self._LHlim != self._nc + 1:
            raise PositionNotSetError(
                f"LocalMPO position not set: window ({self._LHlim}, {self._RHlim}), "
                f"num_center = {self._nc}"
            )
        return self._LHlim + 1

    def size(self) -> int:
        return self._lop.size()

    # ------------------------------------------------------------------
    # Sparse matrix methods
    # ------------------------------------------------------------------

    def product(self, phi: Tensor) -> Tensor:
        return self._lop.product(phi)

    def expect(self, phi: Tensor) -> float:
        return self._lop.expect(phi)

    def diag(self) -> Tensor:
        return self._lop.diag()

    def delta_rho(self, phi: Tensor, C: Tensor, direction: Direction) -> Tensor:
        return self._lop.delta_rho(phi, C, direction)

    def delta_phi(self, phi: Tensor) -> Tensor:
        return self._lop.delta_phi(phi)

    # ------------------------------------------------------------------
    # Overwriting environments
    # ------------------------------------------------------------------

    def set_left(self, nL: Tensor, j: int | None = None) -> None:
        """
        Replace the left environment at the current cursor or, given j,
        the one bordering site j (covering sites < j).
        """
        self._op()
        if j is not None and self._LHlim > j - 1:
            self._LHlim = j - 1
        self._store(self._LHlim, nL, _Side.LEFT)
        self._refresh_if_positioned()

    def set_right(self, nR: Tensor, j: int | None = None) -> None:
        """
        Replace the right environment at the current cursor or, given j,
        the one bordering site j (covering sites > j).
        """
        self._op()
        if j is not None and self._RHlim < j + 1:
            self._RHlim = j + 1
        self._store(self._RHlim, nR, _Side.RIGHT)
        self._refresh_if_positioned()

    # ------------------------------------------------------------------
    # Moving the window
    # ------------------------------------------------------------------

    def position(self, b: int, psi: ChainState) -> None:
        """
        Expose sites b..b+num_center-1, using psi to build environments.

        Cursors only ever advance toward the target while environments
        are built; a cursor already past the target is moved back onto a
        slot that must still hold an environment from its side.

        Raises
        ------
        UnsupportedPositionError
            If moving a cursor back would land on a slot without a valid
            environment. The cache is left unchanged.
        """
        op = self._op()
        kL = b - 1
        kR = b + self._nc
        if kL < 0 or kR > op.N + 1:
            raise UsageError(
                f"Cannot expose {self._nc} sites from site {b} on a chain of {op.N}"
            )
        if self._LHlim > kL and not self._holds(kL, _Side.LEFT):
            raise UnsupportedPositionError(
                f"No cached left environment at slot {kL} (left_limit = {self._LHlim})"
            )
        if self._RHlim < kR and not self._holds(kR, _Side.RIGHT):
            raise UnsupportedPositionError(
                f"No cached right environment at slot {kR} (right_limit = {self._RHlim})"
            )

        self._make_left(op, psi, kL)
        self._make_right(op, psi, kR)

        self._LHlim = kL
        self._RHlim = kR
        self._refresh(op, b)

    def shift(self, j: int, direction: Direction, A: Tensor) -> None:
        """
        Absorb site j into the environment at the adjacent cursor.

        The new environment is E * A * W_j * conj(A'), with A the updated
        MPS tensor at site j. The opposite cursor is reset so that the
        window is again num_center sites wide; environments beyond it are
        considered stale.

        Parameters
        ----------
        j : int
            Site to absorb; must be left_limit+1 for FROM_LEFT and
            right_limit-1 for FROM_RIGHT.
        direction : Direction
            Side whose environment grows.
        A : Tensor
            MPS tensor at site j.

        Raises
        ------
        ShiftBoundaryError
            If j is not adjacent to the cursor. The cache is unchanged.
        """
        op = self._op()
        nc = self._nc
        if direction is Direction.FROM_LEFT:
            if j - 1 != self._LHlim:
                raise ShiftBoundaryError(
                    f"Can only shift at left_limit: j-1 = {j - 1}, left_limit = {self._LHlim}"
                )
            new_L, new_R = j, j + nc + 1
            if new_R > op.N + 1 or not self._holds(new_R, _Side.RIGHT):
                raise UnsupportedPositionError(
                    f"No cached right environment at slot {new_R}"
                )
            E = self._PH[self._LHlim]
            side = _Side.LEFT
        elif direction is Direction.FROM_RIGHT:
            if j + 1 != self._RHlim:
                raise ShiftBoundaryError(
                    f"Can only shift at right_limit: j+1 = {j + 1}, right_limit = {self._RHlim}"
                )
            new_L, new_R = j - nc - 1, j
            if new_L < 0 or not self._holds(new_L, _Side.LEFT):
                raise UnsupportedPositionError(
                    f"No cached left environment at slot {new_L}"
                )
            E = self._PH[self._RHlim]
            side = _Side.RIGHT
        else:
            raise UsageError(f"Unknown direction {direction!r}")

        nE = A if E is None else E * A
        nE = nE * op[j]
        nE = nE * A.conj().prime()

        self._store(j, nE, side)
        self._LHlim = new_L
        self._RHlim = new_R
        logger.debug(f"LocalMPO shifted {direction.value} to ({new_L}, {new_R})")
        self._refresh(op, new_L + 1)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _holds(self, slot: int, side: _Side) -> bool:
        if side is _Side.LEFT and slot == 0:
            return True
        if side is _Side.RIGHT and slot == len(self._PH) - 1:
            return True
        return self._sides[slot] is side

    def _store(self, slot: int, T: Tensor | None, side: _Side) -> None:
        self._PH[slot] = T
        self._sides[slot] = side

    def _make_left(self, op: MPO, psi: ChainState, k: int) -> None:
        while self._LHlim < k:
            ll = self._LHlim
            logger.debug(f"LocalMPO absorbing site {ll + 1} from the left")
            nE = psi.project_op(ll + 1, Direction.FROM_LEFT, self._PH[ll], op[ll + 1])
            self._store(ll + 1, nE, _Side.LEFT)
            self._LHlim += 1

    def _make_right(self, op: MPO, psi: ChainState, k: int) -> None:
        while self._RHlim > k:
            rl = self._RHlim
            logger.debug(f"LocalMPO absorbing site {rl - 1} from the right")
            nE = psi.project_op(rl - 1, Direction.FROM_RIGHT, self._PH[rl], op[rl - 1])
            self._store(rl - 1, nE, _Side.RIGHT)
            self._RHlim -= 1

    def _refresh(self, op: MPO, b: int) -> None:
        ops = [op[j] for j in range(b, b + self._nc)]
        self._lop.update(ops, L=self._PH[self._LHlim], R=self._PH[self._RHlim])

    def _refresh_if_positioned(self) -> None:
        if self._RHlim - self._LHlim == self._nc + 1:
            self._refresh(self._op(), self._LHlim + 1)
