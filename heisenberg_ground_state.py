"""
Example: DMRG ground state of the Heisenberg XXZ chain.

This script builds the MPO of an open spin-1/2 XXZ chain, finds its
ground state with two-site DMRG and, for short chains, compares the
energy with exact diagonalisation.
"""

import logging
import time
from pathlib import Path

import numpy as np
import scipy.linalg as sla

# Import the library
from tensorchain import (
    LocalMPO,
    MPS,
    Sweeps,
    dmrg,
    heisenberg_mpo,
    spin_half_sites,
)


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    # =========================================================================
    # Model Parameters
    # =========================================================================
    L = 10                # System size
    J = 1.0               # In-plane coupling
    Jz = 1.0              # Longitudinal coupling
    h = 0.0               # Longitudinal field
    save_data = False     # Save results to file

    # =========================================================================
    # Sweep Parameters
    # =========================================================================
    sweeps = Sweeps(
        nsweep=6,
        maxdim=[8, 16, 32, 64],
        cutoff=1e-12,
        num_center=2,
    )
    initial_bond_dim = 4

    print("=" * 60)
    print(f"Heisenberg XXZ chain, L = {L}")
    print("-" * 60)
    print(f"  J: {J}")
    print(f"  Jz: {Jz}")
    print(f"  h: {h}")
    print(f"\nSweeps:")
    print(f"  nsweep: {sweeps.nsweep}")
    print(f"  maxdim: {sweeps.maxdim}")
    print(f"  cutoff: {sweeps.cutoff}")
    print("=" * 60 + "\n")

    # =========================================================================
    # Build Hamiltonian and Initial State
    # =========================================================================
    sites = spin_half_sites(L)
    H = heisenberg_mpo(sites, J=J, Jz=Jz, h=h)
    psi0 = MPS.random(sites, bond_dim=initial_bond_dim, rng=np.random.default_rng(0))

    print(f"Initial energy: {psi0.expect(H):.10f}")
    print(f"Initial bond dimensions: {psi0.bond_dims()}")

    # =========================================================================
    # DMRG
    # =========================================================================
    start_time = time.time()
    energy, psi = dmrg(H, psi0, sweeps)
    total_time = time.time() - start_time

    print(f"\nDMRG energy: {energy:.12f}")
    print(f"Energy per site: {energy / L:.12f}")
    print(f"Final bond dimensions: {psi.bond_dims()}")
    print(f"Total DMRG time: {total_time:.2f}s")

    # =========================================================================
    # Local Operator at the Chain Centre
    # =========================================================================
    b = L // 2
    with LocalMPO.bound(H, num_center=2) as PH:
        PH.position(b, psi)
        phi = psi[b] * psi[b + 1]
        print(f"\nLocal problem at bond {PH.current_bond()}: size {PH.size()}")
        print(f"  <psi|H|psi> from environments = {PH.expect(phi):.12f}")

    # =========================================================================
    # Exact Diagonalisation
    # =========================================================================
    if L <= 12:
        exact = sla.eigh(H.to_dense(), eigvals_only=True, subset_by_index=[0, 0])[0]
        print(f"\nExact energy: {exact:.12f}")
        print(f"Error: {abs(energy - exact):.3e}")

    # =========================================================================
    # Save Results
    # =========================================================================
    if save_data:
        filename = f"../data/DMRG/heisenberg_L{L}_J{J}_Jz{Jz}_h{h}_mpo.h5"
        Path(filename).parent.mkdir(parents=True, exist_ok=True)
        H.export(filename)


if __name__ == "__main__":
    main()
