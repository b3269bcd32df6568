"""Power mismatch evaluation.

P_i = Σ_j V_i·V_j·(G_ij·cos δ_ij + B_ij·sin δ_ij)
Q_i = Σ_j V_i·V_j·(G_ij·sin δ_ij − B_ij·cos δ_ij)

Mismatch = specified − calculated, with ΔP for every non-slack bus and
ΔQ for PQ buses only (PV buses solve for Q, so it has no specified value).
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from loadflow.network_model import PQ, PV, NetworkModel
from loadflow.per_unit import mw_to_pu


@dataclass(frozen=True)
class BusClassification:
    """Which buses contribute unknowns to the Newton-Raphson system."""
    slack: int
    pv: tuple[int, ...]
    pq: tuple[int, ...]

    @property
    def non_slack(self) -> tuple[int, ...]:
        """Buses with an unknown angle, in bus order."""
        return tuple(sorted(self.pv + self.pq))

    @property
    def n_angle(self) -> int:
        return len(self.pv) + len(self.pq)

    @property
    def n_vars(self) -> int:
        return self.n_angle + len(self.pq)

    @classmethod
    def from_network(cls, network: NetworkModel) -> BusClassification:
        return cls(
            slack=network.slack_bus,
            pv=tuple(network.pv_buses),
            pq=tuple(network.pq_buses),
        )


@dataclass(frozen=True)
class Mismatch:
    """Mismatch of a single voltage state."""
    p_calc: np.ndarray
    q_calc: np.ndarray
    vector: np.ndarray  # [ΔP non-slack; ΔQ PQ]

    @property
    def max_abs(self) -> float:
        if self.vector.size == 0:
            return 0.0
        return float(np.max(np.abs(self.vector)))


def specified_injections(network: NetworkModel, s_base_mva: float) -> tuple[np.ndarray, np.ndarray]:
    """Net scheduled injections (generation − demand) in per-unit.

    The slack entry stays zero; it is never part of the mismatch vector.
    """
    n = network.n_bus
    p_spec = np.zeros(n)
    q_spec = np.zeros(n)
    for i, bus in enumerate(network.buses):
        kind = bus.kind
        if isinstance(kind, PV):
            p_spec[i] = mw_to_pu(kind.p_mw, s_base_mva)
        elif isinstance(kind, PQ):
            p_spec[i] = -mw_to_pu(kind.p_mw, s_base_mva)
            q_spec[i] = -mw_to_pu(kind.q_mvar, s_base_mva)
    return p_spec, q_spec


def calculate_injections(
    y_bus: np.ndarray,
    voltages: np.ndarray,
    angles: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Calculated P and Q injection at every bus for the given voltage state."""
    v_complex = voltages * np.exp(1j * angles)
    s_bus = v_complex * np.conj(y_bus @ v_complex)
    return s_bus.real, s_bus.imag


def evaluate_mismatch(
    y_bus: np.ndarray,
    voltages: np.ndarray,
    angles: np.ndarray,
    p_spec: np.ndarray,
    q_spec: np.ndarray,
    classes: BusClassification,
) -> Mismatch:
    p_calc, q_calc = calculate_injections(y_bus, voltages, angles)

    dp = p_spec - p_calc
    dq = q_spec - q_calc

    vector = np.concatenate([
        dp[list(classes.non_slack)],
        dq[list(classes.pq)],
    ])
    return Mismatch(p_calc=p_calc, q_calc=q_calc, vector=vector)
