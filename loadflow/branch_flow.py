"""Branch flow calculation from solved bus voltages.

For a branch i → j with series impedance z and total charging B:
  I_series = (V_i − V_j) / z
  I_ij = I_series + jB/2·V_i        (current leaving bus i)
  I_ji = −I_series + jB/2·V_j       (current leaving bus j)
  S_ij = V_i·I_ij*,  S_ji = V_j·I_ji*
  P_loss = |I_series|²·R            (the charging shunt is lossless)

Loading compares the series current in kA against the rated current
I_rated = S_rating / (√3·V_base) of the from-bus voltage level.
"""

from __future__ import annotations

import numpy as np

from loadflow.network_model import NetworkModel
from loadflow.per_unit import i_base, pu_to_mw, rated_current_ka
from loadflow.results import BranchResult, LoadingLevel

HIGH_LOADING_PCT = 60.0
CRITICAL_LOADING_PCT = 80.0


def loading_level(loading_pct: float) -> LoadingLevel:
    if loading_pct > CRITICAL_LOADING_PCT:
        return LoadingLevel.CRITICAL
    if loading_pct >= HIGH_LOADING_PCT:
        return LoadingLevel.HIGH
    return LoadingLevel.NORMAL


def calculate_branch_flows(
    network: NetworkModel,
    voltages: np.ndarray,
    angles: np.ndarray,
    base_mva: float,
    default_base_kv: float,
) -> tuple[BranchResult, ...]:
    """Per-branch current, flows, losses and loading for a voltage state."""
    v_complex = voltages * np.exp(1j * angles)

    results = []
    for br in network.branches:
        i = network.bus_index[br.from_bus]
        j = network.bus_index[br.to_bus]
        base_kv = network.buses[i].base_kv or default_base_kv

        shunt = 1j * br.b_pu / 2
        i_series = (v_complex[i] - v_complex[j]) / br.z_pu
        i_ij = i_series + shunt * v_complex[i]
        i_ji = -i_series + shunt * v_complex[j]

        s_ij = v_complex[i] * np.conj(i_ij)
        s_ji = v_complex[j] * np.conj(i_ji)
        loss_s = s_ij + s_ji

        current_pu = float(abs(i_series))
        current_ka = current_pu * i_base(base_kv, base_mva)

        rated_ka = 0.0
        loading = 0.0
        if br.rating_mva > 0:
            rated_ka = rated_current_ka(br.rating_mva, base_kv)
            loading = current_ka / rated_ka * 100.0

        results.append(BranchResult(
            branch_id=br.id,
            from_bus=br.from_bus,
            to_bus=br.to_bus,
            current_pu=current_pu,
            current_ka=current_ka,
            rated_current_ka=rated_ka,
            p_from_mw=pu_to_mw(float(s_ij.real), base_mva),
            q_from_mvar=pu_to_mw(float(s_ij.imag), base_mva),
            p_to_mw=-pu_to_mw(float(s_ji.real), base_mva),
            q_to_mvar=-pu_to_mw(float(s_ji.imag), base_mva),
            losses_mw=pu_to_mw(current_pu ** 2 * br.r_pu, base_mva),
            losses_mvar=pu_to_mw(float(loss_s.imag), base_mva),
            loading_pct=loading,
            loading_level=loading_level(loading),
        ))

    return tuple(results)
