import numpy as np
import pytest
import scipy.linalg as sla

from tensorchain import MPS, Sweeps, UsageError, dmrg, heisenberg_mpo, spin_half_sites


@pytest.fixture
def heisenberg6():
    sites = spin_half_sites(6)
    H = heisenberg_mpo(sites, J=1.0, Jz=1.0)
    exact = sla.eigh(H.to_dense(), eigvals_only=True)[0]
    return sites, H, exact


def test_ground_state_energy(heisenberg6):
    sites, H, exact = heisenberg6
    psi0 = MPS.random(sites, bond_dim=2, rng=np.random.default_rng(1))
    energy, psi = dmrg(H, psi0, Sweeps(nsweep=6, maxdim=16))
    assert energy == pytest.approx(exact, abs=1e-8)
    assert psi.expect(H) == pytest.approx(exact, abs=1e-8)
    assert psi.norm() == pytest.approx(1.0)
    assert psi.center == 1


def test_ground_state_with_lanczos(heisenberg6):
    sites, H, exact = heisenberg6
    psi0 = MPS.random(sites, bond_dim=2, rng=np.random.default_rng(2))
    energy, _ = dmrg(H, psi0, Sweeps(nsweep=6, maxdim=16, dense_cutoff=0))
    assert energy == pytest.approx(exact, abs=1e-7)


def test_maxdim_is_respected(heisenberg6):
    sites, H, exact = heisenberg6
    psi0 = MPS.random(sites, bond_dim=2, rng=np.random.default_rng(3))
    energy, psi = dmrg(H, psi0, Sweeps(nsweep=3, maxdim=[2, 3]))
    assert max(psi.bond_dims()) <= 3
    assert energy >= exact - 1e-10


def test_input_state_untouched(heisenberg6):
    sites, H, _ = heisenberg6
    psi0 = MPS.random(sites, bond_dim=2, rng=np.random.default_rng(4))
    before = psi0.to_dense()
    dmrg(H, psi0, Sweeps(nsweep=1, maxdim=4))
    np.testing.assert_array_equal(psi0.to_dense(), before)


def test_rejects_bad_arguments(heisenberg6):
    sites, H, _ = heisenberg6
    psi0 = MPS.random(sites, rng=np.random.default_rng(5))
    with pytest.raises(UsageError):
        dmrg(H, psi0, Sweeps(num_center=1))
    other = MPS.random(spin_half_sites(6), rng=np.random.default_rng(6))
    with pytest.raises(UsageError):
        dmrg(H, other)


def test_ground_state_with_noise(heisenberg6):
    sites, H, exact = heisenberg6
    psi0 = MPS.random(sites, bond_dim=2, rng=np.random.default_rng(7))
    energy, psi = dmrg(H, psi0, Sweeps(nsweep=8, maxdim=16, noise=[1e-3, 1e-4, 1e-6, 0.0]))
    assert energy == pytest.approx(exact, abs=1e-8)
    assert psi.expect(H) == pytest.approx(exact, abs=1e-8)
    assert psi.norm() == pytest.approx(1.0)
