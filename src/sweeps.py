"""
Sweep schedules and sweep parameters.

This module provides the sequence of bond positions a sweeping
algorithm visits, and the per-sweep accuracy settings.
"""

from __future__ import annotations
import numpy as np
from dataclasses import dataclass
from typing import Sequence

from .errors import UsageError
from .mps import Direction


@dataclass
class SweepStep:
    """
    A single step in a sweep.

    Attributes
    ----------
    b : int
        First exposed site.
    direction : Direction
        FROM_LEFT on the left-to-right half sweep, FROM_RIGHT on the way
        back.
    half : int
        1 or 2, the half sweep this step belongs to.
    end_of_sweep : bool
        Whether this step completes a full sweep.
    """
    b: int
    direction: Direction
    half: int
    end_of_sweep: bool = False


@dataclass
class Sweeps:
    """
    Accuracy settings for a DMRG calculation.

    `maxdim`, `cutoff` and `noise` may be given per sweep; the last value is
    repeated once the list runs out.

    Attributes
    ----------
    nsweep : int
        Number of full sweeps.
    maxdim : int or list of int
        Maximum bond dimension.
    cutoff : float or list of float
        Maximum discarded weight per SVD.
    num_center : int
        Number of sites optimised together.
    dense_cutoff : int
        Local problems up to this dimension are solved by dense
        diagonalisation instead of Lanczos.
    eigsh_tol : float
        Tolerance passed to scipy's eigsh.
    noise : float or list of float
        Weight of the perturbative density-matrix correction added
        before truncation; 0 switches it off.
    """
    nsweep: int = 5
    maxdim: int | Sequence[int] = 64
    cutoff: float | Sequence[float] = 1e-12
    num_center: int = 2
    dense_cutoff: int = 256
    eigsh_tol: float = 1e-10
    noise: float | Sequence[float] = 0.0

    def __post_init__(self):
        if self.nsweep < 1:
            raise UsageError(f"nsweep must be >= 1, got {self.nsweep}")
        if self.num_center < 1:
            raise UsageError(f"num_center must be set >= 1, got {self.num_center}")

    def maxdim_at(self, sweep: int) -> int:
        return _at(self.maxdim, sweep)

    def cutoff_at(self, sweep: int) -> float:
        return _at(self.cutoff, sweep)

    def noise_at(self, sweep: int) -> float:
        return _at(self.noise, sweep)


def _at(value, sweep: int):
    if np.ndim(value) == 0:
        return value
    return value[min(sweep, len(value)) - 1]


def sweep_sequence(N: int, num_center: int = 2) -> list[SweepStep]:
    """
    Bond positions of one full sweep over a chain of N sites.

    Parameters
    ----------
    N : int
        Chain length.
    num_center : int
        Number of exposed sites per step.

    Returns
    -------
    list of SweepStep
        Left-to-right steps b = 1..N-num_center+1, then right-to-left
        steps back to b = 1.
    """
    last = N - num_center + 1
    if last < 1:
        raise UsageError(f"Chain of {N} sites cannot expose {num_center} sites")
    steps = [SweepStep(b, Direction.FROM_LEFT, 1) for b in range(1, last + 1)]
    steps += [SweepStep(b, Direction.FROM_RIGHT, 2) for b in range(last, 0, -1)]
    steps[-1].end_of_sweep = True
    return steps
