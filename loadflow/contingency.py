"""Single-outage (N-1) security screening.

Each branch is taken out of service in turn and the reduced network is
re-solved. An outage passes when the solve converges with every bus
inside the grid code contingency band and every surviving branch under
the thermal cap. An outage that separates any bus from the slack fails
without a solve. An outage whose solve diverges also fails; its last
iterate is kept for diagnostics but is not screened against the limits
and does not feed the worst-case summary.

Outage cases share nothing mutable, so any concurrent.futures executor
may run them. Results keep the order of the network's branch list.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Iterable, Sequence

from loadflow.grid_codes import IEC_DEFAULT, GridCodeProfile
from loadflow.network_model import NetworkModel, validate_network
from loadflow.power_flow import SolveConfig, solve
from loadflow.results import LoadFlowResult
from loadflow.stability import Stability

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoltageViolationDetail:
    bus_id: str
    voltage_pu: float
    limit_type: str  # low | high
    limit_value: float

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "voltage_pu": round(self.voltage_pu, 4)}


@dataclass(frozen=True)
class ThermalViolationDetail:
    branch_id: str
    loading_pct: float
    rating_mva: float
    limit_pct: float

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "loading_pct": round(self.loading_pct, 1)}


@dataclass(frozen=True)
class ContingencyResult:
    """Outcome of taking `branch_id` out of service.

    `max_loading_branch` names the most loaded surviving branch. Voltage and
    loading figures of a non-converged case come from the last iterate.
    """
    branch_id: str
    passed: bool
    converged: bool
    iterations: int
    max_mismatch: float
    stability: Stability
    voltage_violations: tuple[VoltageViolationDetail, ...] = ()
    thermal_violations: tuple[ThermalViolationDetail, ...] = ()
    min_voltage_pu: float = 1.0
    min_voltage_bus: str = ""
    max_voltage_pu: float = 1.0
    max_loading_pct: float = 0.0
    max_loading_branch: str = ""
    causes_islanding: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "branch_id": self.branch_id,
            "passed": self.passed,
            "converged": self.converged,
            "iterations": self.iterations,
            "stability": self.stability.value,
            "causes_islanding": self.causes_islanding,
            "min_voltage_pu": round(self.min_voltage_pu, 4),
            "min_voltage_bus": self.min_voltage_bus,
            "max_voltage_pu": round(self.max_voltage_pu, 4),
            "max_loading_pct": round(self.max_loading_pct, 1),
            "max_loading_branch": self.max_loading_branch,
            "voltage_violations": [v.to_dict() for v in self.voltage_violations],
            "thermal_violations": [t.to_dict() for t in self.thermal_violations],
        }


@dataclass(frozen=True)
class ContingencyAnalysisResult:
    """Every outage case plus the worst voltage and loading seen across them.

    The worst-case figures only consider outages that keep the network in
    one piece and converge. Islanding and diverged cases are counted
    separately.
    """
    grid_code: str
    total_contingencies: int
    passed_count: int
    failed_count: int
    island_count: int
    diverged_count: int
    worst_voltage_pu: float
    worst_voltage_bus: str
    worst_loading_pct: float
    worst_loading_branch: str
    contingencies: tuple[ContingencyResult, ...] = field(default_factory=tuple)

    @property
    def n1_secure(self) -> bool:
        return self.failed_count == 0

    def to_dict(self) -> dict[str, Any]:
        summary = {
            "total_contingencies": self.total_contingencies,
            "passed": self.passed_count,
            "failed": self.failed_count,
            "islanding_cases": self.island_count,
            "diverged_cases": self.diverged_count,
            "worst_voltage_pu": round(self.worst_voltage_pu, 4),
            "worst_voltage_bus": self.worst_voltage_bus,
            "worst_loading_pct": round(self.worst_loading_pct, 1),
            "worst_loading_branch": self.worst_loading_branch,
            "n1_secure": self.n1_secure,
        }
        return {
            "grid_code": self.grid_code,
            "summary": summary,
            "contingencies": [c.to_dict() for c in self.contingencies],
        }


def _islanded(branch_id: str) -> ContingencyResult:
    return ContingencyResult(
        branch_id=branch_id,
        passed=False,
        converged=False,
        iterations=0,
        max_mismatch=float("inf"),
        stability=Stability.UNSTABLE,
        min_voltage_pu=0.0,
        max_voltage_pu=0.0,
        causes_islanding=True,
    )


def evaluate_outage(
    network: NetworkModel,
    branch_id: str,
    config: SolveConfig,
    grid_code: GridCodeProfile,
) -> ContingencyResult:
    """Solve the network with `branch_id` removed and screen the result."""
    reduced = network.without_branch(branch_id)
    if not reduced.is_connected():
        logger.info("Outage of branch %s islands the network", branch_id)
        return _islanded(branch_id)

    result = solve(reduced, config)
    weakest = min(result.buses, key=lambda b: b.voltage_pu)
    hottest = max(result.branches, key=lambda b: b.loading_pct, default=None)
    case = ContingencyResult(
        branch_id=branch_id,
        passed=False,
        converged=result.converged,
        iterations=result.iterations,
        max_mismatch=result.max_mismatch,
        stability=result.stability,
        min_voltage_pu=weakest.voltage_pu,
        min_voltage_bus=weakest.bus_id,
        max_voltage_pu=result.max_voltage_pu,
        max_loading_pct=hottest.loading_pct if hottest else 0.0,
        max_loading_branch=hottest.branch_id if hottest else "",
    )
    if not result.converged:
        logger.info(
            "Outage of branch %s did not converge (%s)", branch_id, result.termination.value
        )
        return case

    limits = grid_code.voltage
    cap = grid_code.thermal_limit_pct

    bound = {"low": limits.contingency_min, "high": limits.contingency_max}
    voltage_violations: list[VoltageViolationDetail] = []
    for bus in result.buses:
        side = limits.check_contingency(bus.voltage_pu)
        if side is not None:
            voltage_violations.append(
                VoltageViolationDetail(bus.bus_id, bus.voltage_pu, side, bound[side])
            )

    thermal_violations = tuple(
        ThermalViolationDetail(
            bf.branch_id, bf.loading_pct, reduced.get_branch(bf.branch_id).rating_mva, cap,
        )
        for bf in result.branches
        if bf.loading_pct > cap
    )

    return replace(
        case,
        passed=not voltage_violations and not thermal_violations,
        voltage_violations=tuple(voltage_violations),
        thermal_violations=thermal_violations,
    )


def _map(executor: Executor | None, fn, *iterables: Iterable) -> list:
    if executor is None:
        return list(map(fn, *iterables))
    return list(executor.map(fn, *iterables))


def run_contingency_analysis(
    network: NetworkModel,
    config: SolveConfig | None = None,
    grid_code: GridCodeProfile | None = None,
    executor: Executor | None = None,
) -> ContingencyAnalysisResult:
    """Screen every single-branch outage of `network`.

    Args:
        network: intact network; it is never modified
        config: solver settings used for every outage case
        grid_code: source of the contingency band and thermal cap (IEC if None)
        executor: pool to spread outage cases over; serial when None

    Raises:
        InvalidNetwork: the intact network fails validation
    """
    validate_network(network)
    config = config or SolveConfig()
    grid_code = grid_code or IEC_DEFAULT

    branch_ids = [br.id for br in network.branches]
    n = len(branch_ids)
    cases: list[ContingencyResult] = _map(
        executor, evaluate_outage,
        [network] * n, branch_ids, [config] * n, [grid_code] * n,
    )

    solved = [c for c in cases if c.converged]
    low = min(solved, key=lambda c: c.min_voltage_pu, default=None)
    if low is None or low.min_voltage_pu >= 1.0:
        worst_voltage, worst_voltage_bus = 1.0, ""
    else:
        worst_voltage, worst_voltage_bus = low.min_voltage_pu, low.min_voltage_bus
    hot = max(solved, key=lambda c: c.max_loading_pct, default=None)
    if hot is None or hot.max_loading_pct <= 0.0:
        worst_loading, worst_loading_branch = 0.0, ""
    else:
        worst_loading, worst_loading_branch = hot.max_loading_pct, hot.max_loading_branch

    passed_count = sum(c.passed for c in cases)
    island_count = sum(c.causes_islanding for c in cases)
    diverged_count = n - len(solved) - island_count
    logger.info(
        "N-1 analysis (%s): %d/%d outages passed, %d islanding, %d diverged",
        grid_code.name, passed_count, n, island_count, diverged_count,
    )

    return ContingencyAnalysisResult(
        grid_code=grid_code.name,
        total_contingencies=n,
        passed_count=passed_count,
        failed_count=n - passed_count,
        island_count=island_count,
        diverged_count=diverged_count,
        worst_voltage_pu=worst_voltage,
        worst_voltage_bus=worst_voltage_bus,
        worst_loading_pct=worst_loading,
        worst_loading_branch=worst_loading_branch,
        contingencies=tuple(cases),
    )


def solve_many(
    networks: Sequence[NetworkModel],
    config: SolveConfig | None = None,
    executor: Executor | None = None,
) -> list[LoadFlowResult]:
    """Solve independent scenarios, optionally in parallel, in input order."""
    if config is None:
        config = SolveConfig()
    return _map(executor, solve, networks, [config] * len(networks))
