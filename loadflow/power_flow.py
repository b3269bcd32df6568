"""Newton-Raphson AC Load Flow Solver.

Supports slack, PV, and PQ bus types.

State machine: Initialized → Iterating → {Converged | Diverged}.

Algorithm:
1. Flat start: V=1.0 pu at PQ buses, setpoints at slack/PV buses, θ=0
   except the slack's specified angle
2. Compute P,Q mismatch at each non-slack bus (Q only at PQ buses)
3. Stop when max(|ΔP|,|ΔQ|) < tolerance
4. Build the analytic Jacobian and solve J × Δx = mismatch
5. Update: θ += Δθ, V += ΔV (clamped to the configured band)
6. Repeat until converged, max_iterations reached, or J is singular

Non-convergence and a singular Jacobian are reported through the result
(converged=False), never raised. A malformed network raises InvalidNetwork
before the first iteration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

import numpy as np

from loadflow.admittance import build_admittance_matrix
from loadflow.branch_flow import calculate_branch_flows
from loadflow.grid_codes import IEC_DEFAULT, VoltageLimits
from loadflow.jacobian import (
    DEFAULT_SINGULAR_EPSILON,
    SingularJacobian,
    build_jacobian,
    solve_correction,
)
from loadflow.mismatch import (
    BusClassification,
    Mismatch,
    calculate_injections,
    evaluate_mismatch,
    specified_injections,
)
from loadflow.network_model import PQ, PV, NetworkModel, Slack, validate_network
from loadflow.per_unit import pu_to_mw
from loadflow.results import BusResult, LoadFlowResult, PowerTotals, Termination
from loadflow.stability import classify_stability

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SolveConfig:
    """Solver settings.

    Attributes:
        tolerance_pu: convergence threshold on max(|ΔP|, |ΔQ|)
        max_iterations: Newton updates allowed before giving up
        base_mva: system power base
        base_kv: voltage base for buses that do not set their own
        voltage_clamp_pu: band PQ voltages are clamped to after each update
        singular_epsilon: reciprocal condition number below which J is singular
        voltage_limits: stable/marginal bands for the stability label
    """
    tolerance_pu: float = 1e-3
    max_iterations: int = 50
    base_mva: float = 100.0
    base_kv: float = 138.0
    voltage_clamp_pu: tuple[float, float] = (0.9, 1.1)
    singular_epsilon: float = DEFAULT_SINGULAR_EPSILON
    voltage_limits: VoltageLimits = field(default_factory=lambda: IEC_DEFAULT.voltage)

    def __post_init__(self) -> None:
        object.__setattr__(self, "voltage_clamp_pu", tuple(self.voltage_clamp_pu))
        if not self.tolerance_pu > 0:
            raise ValueError("tolerance_pu must be positive")
        if self.max_iterations < 0:
            raise ValueError("max_iterations must be non-negative")
        if not self.base_mva > 0:
            raise ValueError("base_mva must be positive")
        if not self.base_kv > 0:
            raise ValueError("base_kv must be positive")
        v_lo, v_hi = self.voltage_clamp_pu
        if not 0 < v_lo < v_hi:
            raise ValueError("voltage_clamp_pu must satisfy 0 < low < high")
        if not self.singular_epsilon > 0:
            raise ValueError("singular_epsilon must be positive")


@dataclass(frozen=True, eq=False)
class SolverState:
    """One point of the iteration; every Newton step produces a new state."""
    voltages: np.ndarray
    angles: np.ndarray
    iteration: int
    max_mismatch: float

    def __post_init__(self) -> None:
        for name in ("voltages", "angles"):
            arr = np.array(getattr(self, name), dtype=float)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)


class SolverStatus(str, Enum):
    INITIALIZED = "initialized"
    ITERATING = "iterating"
    CONVERGED = "converged"
    DIVERGED = "diverged"


class NewtonRaphsonSolver:
    """Newton-Raphson iteration over a validated network.

    Use run() for a full solve, iterate() to replay every SolverState, or
    step() to advance a single state.
    """

    def __init__(self, network: NetworkModel, config: SolveConfig | None = None):
        validate_network(network)
        self.network = network
        self.config = config or SolveConfig()
        self.y_bus = build_admittance_matrix(network)
        self.classes = BusClassification.from_network(network)
        self.p_spec, self.q_spec = specified_injections(network, self.config.base_mva)
        self.status = SolverStatus.INITIALIZED
        self.termination: Termination | None = None

    def mismatch(self, voltages: np.ndarray, angles: np.ndarray) -> Mismatch:
        return evaluate_mismatch(
            self.y_bus, voltages, angles, self.p_spec, self.q_spec, self.classes
        )

    def _state(self, voltages: np.ndarray, angles: np.ndarray, iteration: int) -> SolverState:
        return SolverState(
            voltages=voltages,
            angles=angles,
            iteration=iteration,
            max_mismatch=self.mismatch(voltages, angles).max_abs,
        )

    def initial_state(self) -> SolverState:
        n = self.network.n_bus
        V = np.ones(n)
        theta = np.zeros(n)
        for i, bus in enumerate(self.network.buses):
            kind = bus.kind
            if isinstance(kind, Slack):
                V[i] = kind.voltage_pu
                theta[i] = kind.angle_rad
            elif isinstance(kind, PV):
                V[i] = kind.voltage_setpoint_pu
        return self._state(V, theta, 0)

    def step(self, state: SolverState) -> SolverState:
        """Apply one Newton correction. Raises SingularJacobian."""
        mm = self.mismatch(state.voltages, state.angles)
        J = build_jacobian(
            self.y_bus, state.voltages, state.angles, mm.p_calc, mm.q_calc, self.classes
        )
        dx = solve_correction(J, mm.vector, self.config.singular_epsilon)

        n_angle = self.classes.n_angle
        theta = state.angles.copy()
        V = state.voltages.copy()
        theta[list(self.classes.non_slack)] += dx[:n_angle]

        pq = list(self.classes.pq)
        v_lo, v_hi = self.config.voltage_clamp_pu
        V[pq] = np.clip(V[pq] + dx[n_angle:], v_lo, v_hi)

        return self._state(V, theta, state.iteration + 1)

    def iterate(self) -> Iterator[SolverState]:
        """Yield every SolverState from the flat start to termination."""
        cfg = self.config
        state = self.initial_state()
        self.status = SolverStatus.ITERATING
        self.termination = None
        yield state

        while True:
            logger.debug("NR iteration %d: max mismatch %.3e", state.iteration, state.max_mismatch)
            if state.max_mismatch < cfg.tolerance_pu:
                self.termination = Termination.CONVERGED
                break
            if state.iteration >= cfg.max_iterations:
                self.termination = Termination.MAX_ITERATIONS
                break
            try:
                state = self.step(state)
            except SingularJacobian as exc:
                logger.warning("Singular Jacobian at iteration %d: %s", state.iteration, exc)
                self.termination = Termination.SINGULAR_JACOBIAN
                break
            yield state

        if self.termination == Termination.CONVERGED:
            self.status = SolverStatus.CONVERGED
        else:
            self.status = SolverStatus.DIVERGED

    def run(self) -> LoadFlowResult:
        states = list(self.iterate())
        final = states[-1]
        termination = self.termination or Termination.MAX_ITERATIONS

        if termination == Termination.CONVERGED:
            logger.info(
                "Load flow converged in %d iterations (max mismatch %.3e)",
                final.iteration, final.max_mismatch,
            )
        else:
            logger.warning(
                "Load flow did not converge: %s after %d iterations (max mismatch %.3e)",
                termination.value, final.iteration, final.max_mismatch,
            )

        return self._build_result(
            final, termination, tuple(s.max_mismatch for s in states)
        )

    def _build_result(
        self,
        state: SolverState,
        termination: Termination,
        history: tuple[float, ...],
    ) -> LoadFlowResult:
        """Build LoadFlowResult including branch flows, totals and stability."""
        network = self.network
        base = self.config.base_mva
        V = state.voltages
        theta = state.angles
        converged = termination == Termination.CONVERGED

        p_calc, q_calc = calculate_injections(self.y_bus, V, theta)

        buses = tuple(
            BusResult(
                bus_id=bus.id,
                bus_type=bus.bus_type,
                voltage_pu=float(V[i]),
                angle_rad=float(theta[i]),
                p_injection_mw=pu_to_mw(float(p_calc[i]), base),
                q_injection_mvar=pu_to_mw(float(q_calc[i]), base),
            )
            for i, bus in enumerate(network.buses)
        )

        branches = calculate_branch_flows(network, V, theta, base, self.config.base_kv)

        # Load is the solved PQ draw, not the scheduled demand
        is_load = np.array([isinstance(bus.kind, PQ) for bus in network.buses])
        gen_mw = pu_to_mw(float(p_calc[~is_load].sum()), base)
        gen_mvar = pu_to_mw(float(q_calc[~is_load].sum()), base)
        load_mw = -pu_to_mw(float(p_calc[is_load].sum()), base)
        load_mvar = -pu_to_mw(float(q_calc[is_load].sum()), base)

        totals = PowerTotals(
            generation_mw=gen_mw,
            load_mw=load_mw,
            losses_mw=sum(br.losses_mw for br in branches),
            generation_mvar=gen_mvar,
            load_mvar=load_mvar,
            losses_mvar=sum(br.losses_mvar for br in branches),
        )

        return LoadFlowResult(
            converged=converged,
            iterations=state.iteration,
            max_mismatch=state.max_mismatch,
            termination=termination,
            stability=classify_stability(converged, V, self.config.voltage_limits),
            totals=totals,
            buses=buses,
            branches=branches,
            mismatch_history=history,
        )


def validate(network: NetworkModel) -> None:
    """Raise InvalidNetwork if the network is structurally unsound."""
    validate_network(network)


def solve(network: NetworkModel, config: SolveConfig | None = None) -> LoadFlowResult:
    """Solve AC load flow using Newton-Raphson.

    Raises InvalidNetwork for malformed input; divergence is reported in
    the returned result.
    """
    return NewtonRaphsonSolver(network, config).run()

