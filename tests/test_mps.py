import numpy as np
import pytest

from tensorchain import LocalMPO, MPS, Direction, Tensor, UsageError, heisenberg_mpo, spin_half_sites


@pytest.fixture
def rng():
    return np.random.default_rng(5)


def test_random_is_normalised_and_right_canonical(rng):
    sites = spin_half_sites(5)
    psi = MPS.random(sites, bond_dim=3, rng=rng)
    assert psi.center == 1
    assert psi.norm() == pytest.approx(1.0)
    for j in range(2, 6):
        A = psi[j]
        left = psi.link_index(j - 1)
        G = A * A.prime(inds=[left])
        np.testing.assert_allclose(G.to_array(left, left.prime()), np.eye(left.dim), atol=1e-12)


def test_bond_dims_are_capped(rng):
    psi = MPS.random(spin_half_sites(6), bond_dim=3, rng=rng)
    assert psi.bond_dims() == [2, 3, 3, 3, 2]


def test_product_state_dense():
    sites = spin_half_sites(3)
    psi = MPS.product_state(sites, [0, 1, 0])
    v = psi.to_dense()
    expected = np.zeros(8)
    expected[0b010] = 1.0
    np.testing.assert_array_equal(v, expected)


def test_expect_matches_dense(rng):
    sites = spin_half_sites(4)
    H = heisenberg_mpo(sites)
    psi = MPS.random(sites, bond_dim=4, rng=rng)
    v = psi.to_dense()
    exact = v @ H.to_dense() @ v / (v @ v)
    assert psi.expect(H) == pytest.approx(exact)


def test_project_op_absorbs_one_site(rng):
    sites = spin_half_sites(3)
    H = heisenberg_mpo(sites)
    psi = MPS.random(sites, bond_dim=2, rng=rng)
    E = psi.project_op(1, Direction.FROM_LEFT, None, H[1])
    link = psi.link_index(1)
    assert set(E.inds) == {link, link.prime(), H[1].inds[-1]}
    E2 = psi.project_op(2, Direction.FROM_LEFT, E, H[2])
    assert E2.rank == 3


def test_project_op_rejects_bad_direction(rng):
    sites = spin_half_sites(2)
    psi = MPS.random(sites, rng=rng)
    with pytest.raises(UsageError):
        psi.project_op(1, "Fromleft", None, heisenberg_mpo(sites)[1])


def test_svd_bond_moves_center(rng):
    sites = spin_half_sites(4)
    psi = MPS.random(sites, bond_dim=4, rng=rng)
    v = psi.to_dense()
    phi = psi[1] * psi[2]
    psi.svd_bond(1, phi, Direction.FROM_LEFT)
    assert psi.center == 2
    np.testing.assert_allclose(psi.to_dense(), v, atol=1e-12)
    phi = psi[2] * psi[3]
    psi.svd_bond(2, phi, Direction.FROM_RIGHT)
    assert psi.center == 2
    np.testing.assert_allclose(psi.to_dense(), v, atol=1e-12)


def test_copy_is_independent(rng):
    sites = spin_half_sites(3)
    psi = MPS.random(sites, rng=rng)
    phi = psi.copy()
    phi[1] = Tensor.zeros(*psi[1].inds)
    assert psi.norm() == pytest.approx(1.0)
    assert phi.center is None


def test_svd_bond_with_noise_keeps_state_at_chain_ends(rng):
    sites = spin_half_sites(4)
    H = heisenberg_mpo(sites)
    psi = MPS.random(sites, bond_dim=4, rng=rng)
    v = psi.to_dense()
    PH = LocalMPO(H)

    PH.position(1, psi)
    psi.svd_bond(1, psi[1] * psi[2], Direction.FROM_LEFT, noise=1e-2, local=PH)
    assert psi.center == 2
    np.testing.assert_allclose(psi.to_dense(), v, atol=1e-12)

    PH.position(3, psi)
    psi.svd_bond(3, psi[3] * psi[4], Direction.FROM_RIGHT, noise=1e-2, local=PH)
    assert psi.center == 3
    np.testing.assert_allclose(psi.to_dense(), v, atol=1e-12)
