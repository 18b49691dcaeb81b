import numpy as np
import pytest

from tensorchain import Direction, Sweeps, UsageError, sweep_sequence


def test_sweep_sequence_two_site():
    steps = sweep_sequence(5, 2)
    assert [s.b for s in steps] == [1, 2, 3, 4, 4, 3, 2, 1]
    assert [s.direction for s in steps[:4]] == [Direction.FROM_LEFT] * 4
    assert [s.direction for s in steps[4:]] == [Direction.FROM_RIGHT] * 4
    assert [s.half for s in steps] == [1] * 4 + [2] * 4
    assert steps[-1].end_of_sweep
    assert not any(s.end_of_sweep for s in steps[:-1])


def test_sweep_sequence_too_short():
    with pytest.raises(UsageError):
        sweep_sequence(1, 2)


def test_per_sweep_settings():
    sw = Sweeps(nsweep=4, maxdim=[4, 8], cutoff=1e-8)
    assert [sw.maxdim_at(n) for n in range(1, 5)] == [4, 8, 8, 8]
    assert sw.cutoff_at(3) == 1e-8


def test_invalid_settings():
    with pytest.raises(UsageError):
        Sweeps(nsweep=0)
    with pytest.raises(UsageError):
        Sweeps(num_center=0)


def test_numpy_scalar_and_array_settings():
    sw = Sweeps(maxdim=np.int64(8), cutoff=np.float32(1e-10), noise=np.array([1e-4, 0.0]))
    assert sw.maxdim_at(1) == 8
    assert sw.maxdim_at(3) == 8
    assert sw.cutoff_at(2) == pytest.approx(1e-10)
    assert sw.noise_at(1) == 1e-4
    assert sw.noise_at(5) == 0.0


def test_noise_defaults_off():
    assert Sweeps().noise_at(1) == 0.0
