import numpy as np
import pytest

from tensorchain import Permutation, UsageError
from tensorchain.permutation import UNSET


def test_unset_entries():
    P = Permutation(3)
    assert P.dest(0) == UNSET
    assert not P.is_complete()
    with pytest.raises(UsageError):
        P.validate()


def test_apply_moves_axes_to_destinations():
    x = np.arange(24).reshape(2, 3, 4)
    P = Permutation(3)
    # axis 2 goes first, then axes 0 and 1
    P.set_from_to(2, 0)
    P.set_from_to(0, 1)
    P.set_from_to(1, 2)
    y = P.apply(x)
    assert y.shape == (4, 2, 3)
    assert y.flags.c_contiguous
    np.testing.assert_array_equal(y, np.transpose(x, (2, 0, 1)))


def test_identity_apply_copies():
    x = np.arange(6).reshape(2, 3)
    P = Permutation(2)
    P.set_from_to(0, 0)
    P.set_from_to(1, 1)
    y = P.apply(x)
    np.testing.assert_array_equal(y, x)
    assert not np.shares_memory(x, y)


def test_non_bijection_rejected():
    P = Permutation(2)
    P.set_from_to(0, 1)
    P.set_from_to(1, 1)
    with pytest.raises(UsageError):
        P.validate()
