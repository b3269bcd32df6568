"""Load flow result types and their JSON-compatible form."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loadflow.network_model import BusType
from loadflow.stability import Stability


class Termination(str, Enum):
    """Why the Newton-Raphson loop stopped."""
    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"
    SINGULAR_JACOBIAN = "singular_jacobian"


class LoadingLevel(str, Enum):
    NORMAL = "normal"      # < 60 % of rating
    HIGH = "high"          # 60-80 %
    CRITICAL = "critical"  # > 80 %


@dataclass(frozen=True)
class BusResult:
    """Solved state of a single bus."""
    bus_id: str
    bus_type: BusType
    voltage_pu: float
    angle_rad: float
    # Net injection into the network (generation − demand)
    p_injection_mw: float
    q_injection_mvar: float


@dataclass(frozen=True)
class BranchResult:
    """Power flow through a single branch."""
    branch_id: str
    from_bus: str
    to_bus: str
    current_pu: float
    current_ka: float
    rated_current_ka: float
    # Sending-end flows (from-bus into the branch)
    p_from_mw: float
    q_from_mvar: float
    # Receiving-end flows (branch into the to-bus)
    p_to_mw: float
    q_to_mvar: float
    losses_mw: float
    losses_mvar: float
    loading_pct: float
    loading_level: LoadingLevel


@dataclass(frozen=True)
class PowerTotals:
    generation_mw: float
    load_mw: float
    losses_mw: float
    generation_mvar: float = 0.0
    load_mvar: float = 0.0
    losses_mvar: float = 0.0


@dataclass(frozen=True)
class LoadFlowResult:
    """Results of a load flow solution."""
    converged: bool
    iterations: int
    max_mismatch: float
    termination: Termination
    stability: Stability
    totals: PowerTotals
    buses: tuple[BusResult, ...] = field(default_factory=tuple)
    branches: tuple[BranchResult, ...] = field(default_factory=tuple)
    # Max mismatch of every solver state, iteration 0 first
    mismatch_history: tuple[float, ...] = field(default_factory=tuple)

    def bus(self, bus_id: str) -> BusResult:
        for b in self.buses:
            if b.bus_id == bus_id:
                return b
        raise KeyError(f"Bus '{bus_id}' not in result")

    def branch(self, branch_id: str) -> BranchResult:
        for br in self.branches:
            if br.branch_id == branch_id:
                return br
        raise KeyError(f"Branch '{branch_id}' not in result")

    @property
    def min_voltage_pu(self) -> float:
        return min((b.voltage_pu for b in self.buses), default=0.0)

    @property
    def max_voltage_pu(self) -> float:
        return max((b.voltage_pu for b in self.buses), default=0.0)

    @property
    def max_loading_pct(self) -> float:
        return max((br.loading_pct for br in self.branches), default=0.0)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "converged": self.converged,
            "iterations": self.iterations,
            "max_mismatch": self.max_mismatch,
            "termination": self.termination.value,
            "stability": self.stability.value,
            "totals": {
                "generation_mw": self.totals.generation_mw,
                "load_mw": self.totals.load_mw,
                "losses_mw": self.totals.losses_mw,
                "generation_mvar": self.totals.generation_mvar,
                "load_mvar": self.totals.load_mvar,
                "losses_mvar": self.totals.losses_mvar,
            },
            "buses": [
                {
                    "id": b.bus_id,
                    "bus_type": b.bus_type.value,
                    "voltage_pu": b.voltage_pu,
                    "angle_rad": b.angle_rad,
                    "p_injection_mw": b.p_injection_mw,
                    "q_injection_mvar": b.q_injection_mvar,
                }
                for b in self.buses
            ],
            "branches": [
                {
                    "id": br.branch_id,
                    "from": br.from_bus,
                    "to": br.to_bus,
                    "current_pu": br.current_pu,
                    "current_ka": br.current_ka,
                    "rated_current_ka": br.rated_current_ka,
                    "p_from_mw": br.p_from_mw,
                    "q_from_mvar": br.q_from_mvar,
                    "p_to_mw": br.p_to_mw,
                    "q_to_mvar": br.q_to_mvar,
                    "losses_mw": br.losses_mw,
                    "losses_mvar": br.losses_mvar,
                    "loading_pct": br.loading_pct,
                    "loading_level": br.loading_level.value,
                }
                for br in self.branches
            ],
            "mismatch_history": list(self.mismatch_history),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoadFlowResult:
        totals = data["totals"]
        return cls(
            converged=bool(data["converged"]),
            iterations=int(data["iterations"]),
            max_mismatch=float(data["max_mismatch"]),
            termination=Termination(data["termination"]),
            stability=Stability(data["stability"]),
            totals=PowerTotals(
                generation_mw=totals["generation_mw"],
                load_mw=totals["load_mw"],
                losses_mw=totals["losses_mw"],
                generation_mvar=totals.get("generation_mvar", 0.0),
                load_mvar=totals.get("load_mvar", 0.0),
                losses_mvar=totals.get("losses_mvar", 0.0),
            ),
            buses=tuple(
                BusResult(
                    bus_id=b["id"],
                    bus_type=BusType(b["bus_type"]),
                    voltage_pu=b["voltage_pu"],
                    angle_rad=b["angle_rad"],
                    p_injection_mw=b["p_injection_mw"],
                    q_injection_mvar=b["q_injection_mvar"],
                )
                for b in data.get("buses", [])
            ),
            branches=tuple(
                BranchResult(
                    branch_id=br["id"],
                    from_bus=br["from"],
                    to_bus=br["to"],
                    current_pu=br["current_pu"],
                    current_ka=br["current_ka"],
                    rated_current_ka=br["rated_current_ka"],
                    p_from_mw=br["p_from_mw"],
                    q_from_mvar=br["q_from_mvar"],
                    p_to_mw=br["p_to_mw"],
                    q_to_mvar=br["q_to_mvar"],
                    losses_mw=br["losses_mw"],
                    losses_mvar=br["losses_mvar"],
                    loading_pct=br["loading_pct"],
                    loading_level=LoadingLevel(br["loading_level"]),
                )
                for br in data.get("branches", [])
            ),
            mismatch_history=tuple(data.get("mismatch_history", ())),
        )
