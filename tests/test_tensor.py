import numpy as np
import pytest

from tensorchain import Index, Tensor, UsageError, combiner


@pytest.fixture
def rng():
    return np.random.default_rng(3)


def test_from_array_copies():
    i, j = Index(2, "i"), Index(3, "j")
    x = np.arange(6.0).reshape(2, 3)
    T = Tensor.from_array(x, i, j)
    x[0, 0] = 99.0
    assert T.array[0, 0] == 0.0


def test_shape_mismatch():
    i = Index(2, "i")
    with pytest.raises(UsageError):
        Tensor.from_array(np.zeros(3), i)


def test_get_and_set_by_index_values():
    i, j = Index(2, "i"), Index(3, "j")
    T = Tensor.zeros(i, j)
    T.set(5.0, j(2), i(1))
    assert T.get(i(1), j(2)) == 5.0
    assert T.array[1, 2] == 5.0


def test_set_upcasts_to_complex():
    i = Index(2, "i")
    T = Tensor.zeros(i)
    T.set(1j, i(0))
    assert T.is_complex()
    assert T.get(i(0)) == 1j


def test_contraction_matches_tensordot(rng):
    i, j, k = Index(2, "i"), Index(3, "j"), Index(4, "k")
    A = Tensor.random(i, j, rng=rng)
    B = Tensor.random(k, j, rng=rng)
    C = A * B
    assert C.inds == (i, k)
    np.testing.assert_allclose(C.array, A.array @ B.array.T)


def test_full_contraction_is_scalar(rng):
    i, j = Index(2, "i"), Index(3, "j")
    A = Tensor.random(i, j, rng=rng)
    s = (A * A).scalar_value()
    assert s == pytest.approx(A.norm() ** 2)


def test_prime_shares_buffer(rng):
    i = Index(2, "i")
    A = Tensor.random(i, rng=rng)
    B = A.prime()
    assert B.inds == (i.prime(),)
    assert B.storage.data is A.storage.data
    B.set(7.0, i.prime()(0))
    assert A.get(i(0)) != 7.0


def test_prime_selected_indices(rng):
    i, j = Index(2, "i"), Index(3, "j")
    A = Tensor.random(i, j, rng=rng)
    assert A.prime(inds=[j]).inds == (i, j.prime())
    assert A.prime(inds=[j]).mapprime(1, 0).inds == (i, j)


def test_permute(rng):
    i, j, k = Index(2, "i"), Index(3, "j"), Index(4, "k")
    A = Tensor.random(i, j, k, rng=rng)
    B = A.permute(k, i, j)
    assert B.inds == (k, i, j)
    np.testing.assert_array_equal(B.array, np.transpose(A.array, (2, 0, 1)))
    assert A.permute(i, j, k).storage.data is A.storage.data
    with pytest.raises(UsageError):
        A.permute(i, j)


def test_conj_and_dag(rng):
    i = Index(3, "i")
    A = Tensor.random(i, rng=rng, dtype=complex)
    np.testing.assert_array_equal(A.conj().array, np.conj(A.array))
    np.testing.assert_array_equal(A.dag().array, np.conj(A.array))
    R = Tensor.random(i, rng=rng)
    assert R.conj().storage.data is R.storage.data


def test_take_diag(rng):
    i, w = Index(3, "i"), Index(2, "w")
    A = Tensor.random(i.prime(), w, i, rng=rng)
    D = A.take_diag(i)
    assert D.inds == (w, i)
    for n in range(3):
        np.testing.assert_allclose(D.array[:, n], A.array[n, :, n])


def test_add_aligns_index_order(rng):
    i, j = Index(2, "i"), Index(3, "j")
    A = Tensor.random(i, j, rng=rng)
    B = Tensor.random(j, i, rng=rng)
    np.testing.assert_allclose((A + B).array, A.array + B.array.T)
    np.testing.assert_allclose((A - A.permute(j, i)).array, 0.0)


def test_scalar_arithmetic(rng):
    i = Index(3, "i")
    A = Tensor.random(i, rng=rng)
    np.testing.assert_allclose((2 * A).array, 2 * A.array)
    np.testing.assert_allclose((A / 2).array, A.array / 2)
    np.testing.assert_allclose((-A).array, -A.array)


def test_imul_does_not_touch_aliases(rng):
    i = Index(3, "i")
    A = Tensor.random(i, rng=rng)
    B = A.prime()
    before = B.array.copy()
    A *= 3.0
    np.testing.assert_array_equal(B.array, before)
    np.testing.assert_allclose(A.array, 3.0 * before)


def test_combiner_has_no_dense_view():
    C = combiner(Index(2, "a"), Index(2, "b"))
    with pytest.raises(UsageError):
        C.array


def test_hdf5_round_trip(tmp_path, rng):
    pytest.importorskip("h5py")
    i, j = Index(2, "i"), Index(3, "j", plev=1)
    A = Tensor.random(i, j, rng=rng)
    fname = tmp_path / "tensor.h5"
    A.export(str(fname))
    B = Tensor.load(str(fname))
    assert B.inds == A.inds
    assert B.inds[1].name == "j"
    np.testing.assert_array_equal(B.array, A.array)


def test_hdf5_combiner_round_trip(tmp_path):
    pytest.importorskip("h5py")
    C = combiner(Index(2, "a"), Index(3, "b"))
    fname = tmp_path / "combiner.h5"
    C.export(str(fname))
    D = Tensor.load(str(fname))
    assert D.is_combiner
    assert D.inds == C.inds
