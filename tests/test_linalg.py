import numpy as np
import pytest

from tensorchain import (
    Index,
    Tensor,
    UsageError,
    combiner,
    density_matrix_split,
    qr_split,
    svd_split,
    truncation_rank,
)


@pytest.fixture
def rng():
    return np.random.default_rng(11)


def test_truncation_rank_cutoff():
    S = np.array([1.0, 0.1, 0.01])
    m, discarded = truncation_rank(S, cutoff=0.0)
    assert m == 3 and discarded == 0.0
    m, discarded = truncation_rank(S, cutoff=1e-3)
    assert m == 2
    assert discarded == pytest.approx(1e-4 / 1.0101)


def test_truncation_rank_maxdim():
    S = np.array([1.0, 0.5, 0.25])
    m, discarded = truncation_rank(S, maxdim=1)
    assert m == 1
    assert discarded == pytest.approx((0.25 + 0.0625) / 1.3125)


def test_svd_split_reconstructs(rng):
    a, b, c = Index(2, "a"), Index(3, "b"), Index(4, "c")
    T = Tensor.random(a, c, b, rng=rng)
    A, B, discarded = svd_split(T, [a, b])
    assert discarded == pytest.approx(0.0, abs=1e-14)
    assert A.inds[:2] == (a, b)
    np.testing.assert_allclose((A * B).to_array(a, c, b), T.array, atol=1e-12)


def test_svd_split_left_isometry(rng):
    a, b, c = Index(2, "a"), Index(3, "b"), Index(4, "c")
    T = Tensor.random(a, b, c, rng=rng)
    A, _, _ = svd_split(T, [a, b], absorb="right", link_name="l")
    link = A.inds[-1]
    G = A * A.prime(inds=[link])
    np.testing.assert_allclose(G.to_array(link, link.prime()), np.eye(link.dim), atol=1e-12)


def test_svd_split_truncates(rng):
    a, b = Index(4, "a"), Index(4, "b")
    T = Tensor.random(a, b, rng=rng)
    A, B, discarded = svd_split(T, [a], maxdim=2)
    assert A.inds[-1].dim == 2
    assert discarded > 0.0


def test_svd_split_bad_absorb(rng):
    a, b = Index(2, "a"), Index(2, "b")
    with pytest.raises(ValueError):
        svd_split(Tensor.random(a, b, rng=rng), [a], absorb="middle")


def test_qr_split(rng):
    a, b, c = Index(2, "a"), Index(3, "b"), Index(2, "c")
    T = Tensor.random(a, b, c, rng=rng)
    Q, R = qr_split(T, [b, c])
    link = Q.inds[-1]
    assert Q.inds[:2] == (b, c)
    G = Q * Q.prime(inds=[link])
    np.testing.assert_allclose(G.to_array(link, link.prime()), np.eye(link.dim), atol=1e-12)
    np.testing.assert_allclose((Q * R).to_array(a, b, c), T.array, atol=1e-12)


def test_factorisation_needs_both_sides(rng):
    a, b = Index(2, "a"), Index(2, "b")
    T = Tensor.random(a, b, rng=rng)
    with pytest.raises(UsageError):
        svd_split(T, [a, b])


def test_density_matrix_split_reconstructs(rng):
    a, b, c = Index(2, "a"), Index(3, "b"), Index(4, "c")
    T = Tensor.random(a, b, c, rng=rng)
    C = combiner(a, b)
    U, X, discarded = density_matrix_split(T, C, link_name="l")
    link = U.inds.common(X.inds)[0]
    assert link.dim == 4
    assert discarded == pytest.approx(0.0, abs=1e-14)
    G = U * U.prime(inds=[link])
    np.testing.assert_allclose(G.to_array(link, link.prime()), np.eye(4), atol=1e-12)
    np.testing.assert_allclose((U * X).to_array(a, b, c), T.array, atol=1e-12)


def test_density_matrix_split_with_noise(rng):
    a, b, c = Index(2, "a"), Index(3, "b"), Index(2, "c")
    T = Tensor.random(a, b, c, rng=rng)
    C = combiner(a, b)
    cind = C.inds[0]
    M = rng.normal(size=(cind.dim, cind.dim))
    D = Tensor.from_array(M @ M.T, cind, cind.prime())
    U, X, discarded = density_matrix_split(T, C, D, 0.1, maxdim=2)
    link = U.inds.common(X.inds)[0]
    assert link.dim == 2
    assert 0.0 <= discarded < 1.0
    G = U * U.prime(inds=[link])
    np.testing.assert_allclose(G.to_array(link, link.prime()), np.eye(2), atol=1e-12)
    # the noise term mixes states outside the support of T into U
    assert (U * X).norm() < T.norm()
