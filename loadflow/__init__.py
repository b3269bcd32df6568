"""Newton-Raphson AC load flow engine.

Provides network validation, Y-bus construction, analytic-Jacobian
Newton-Raphson load flow, branch flows, stability classification,
N-1 contingency analysis and fault studies. Pure numeric code: no I/O,
no global state.
"""

from loadflow.contingency import run_contingency_analysis, solve_many
from loadflow.grid_codes import GridCodeProfile, VoltageLimits, get_profile
from loadflow.jacobian import SingularJacobian
from loadflow.network_model import (
    PQ,
    PV,
    BranchData,
    BusData,
    BusType,
    InvalidNetwork,
    NetworkModel,
    Slack,
    network_from_dict,
    network_to_dict,
)
from loadflow.power_flow import NewtonRaphsonSolver, SolveConfig, SolverState, solve, validate
from loadflow.results import BranchResult, BusResult, LoadFlowResult, PowerTotals, Termination
from loadflow.short_circuit import (
    FaultConfig,
    FaultType,
    analyze_fault,
    calculate_short_circuit,
)
from loadflow.stability import Stability, classify_stability

__all__ = [
    "PQ",
    "PV",
    "BranchData",
    "BranchResult",
    "BusData",
    "BusResult",
    "BusType",
    "FaultConfig",
    "FaultType",
    "GridCodeProfile",
    "InvalidNetwork",
    "LoadFlowResult",
    "NetworkModel",
    "NewtonRaphsonSolver",
    "PowerTotals",
    "SingularJacobian",
    "Slack",
    "SolveConfig",
    "SolverState",
    "Stability",
    "Termination",
    "VoltageLimits",
    "analyze_fault",
    "calculate_short_circuit",
    "classify_stability",
    "get_profile",
    "network_from_dict",
    "network_to_dict",
    "run_contingency_analysis",
    "solve",
    "solve_many",
    "validate",
]
