"""Analytic power-flow Jacobian and the guarded linear solve.

J = [[∂P/∂δ, ∂P/∂V],
     [∂Q/∂δ, ∂Q/∂V]]

Rows: P for non-slack buses, Q for PQ buses.
Columns: δ for non-slack buses, |V| for PQ buses.

Off-diagonal (i ≠ j), with δ_ij = δ_i − δ_j:
  ∂P_i/∂δ_j =  V_i·V_j·(G_ij·sin δ_ij − B_ij·cos δ_ij)
  ∂P_i/∂V_j =  V_i·(G_ij·cos δ_ij + B_ij·sin δ_ij)
  ∂Q_i/∂δ_j = −V_i·V_j·(G_ij·cos δ_ij + B_ij·sin δ_ij)
  ∂Q_i/∂V_j =  V_i·(G_ij·sin δ_ij − B_ij·cos δ_ij)

Diagonal:
  ∂P_i/∂δ_i = −Q_i − B_ii·V_i²
  ∂P_i/∂V_i =  P_i/V_i + G_ii·V_i
  ∂Q_i/∂δ_i =  P_i − G_ii·V_i²
  ∂Q_i/∂V_i =  Q_i/V_i − B_ii·V_i
"""

from __future__ import annotations

import numpy as np

from loadflow.mismatch import BusClassification

DEFAULT_SINGULAR_EPSILON = 1e-12


class SingularJacobian(ArithmeticError):
    """The Newton-Raphson linear system cannot be solved reliably."""

    def __init__(self, message: str, rcond: float = 0.0):
        self.rcond = rcond
        super().__init__(message)


def build_jacobian(
    y_bus: np.ndarray,
    voltages: np.ndarray,
    angles: np.ndarray,
    p_calc: np.ndarray,
    q_calc: np.ndarray,
    classes: BusClassification,
) -> np.ndarray:
    """Assemble the full Jacobian at the given voltage state."""
    G = y_bus.real
    B = y_bus.imag
    V = voltages

    angle_diff = angles[:, None] - angles[None, :]
    cos_d = np.cos(angle_diff)
    sin_d = np.sin(angle_diff)
    g_cos_b_sin = G * cos_d + B * sin_d
    g_sin_b_cos = G * sin_d - B * cos_d
    vv = np.outer(V, V)

    dp_dtheta = vv * g_sin_b_cos
    dp_dv = V[:, None] * g_cos_b_sin
    dq_dtheta = -vv * g_cos_b_sin
    dq_dv = V[:, None] * g_sin_b_cos

    g_diag = np.diag(G)
    b_diag = np.diag(B)
    diag = np.diag_indices_from(G)
    dp_dtheta[diag] = -q_calc - b_diag * V ** 2
    dp_dv[diag] = p_calc / V + g_diag * V
    dq_dtheta[diag] = p_calc - g_diag * V ** 2
    dq_dv[diag] = q_calc / V - b_diag * V

    ns = list(classes.non_slack)
    pq = list(classes.pq)

    # J1: ∂P/∂δ (non-slack × non-slack)   J2: ∂P/∂V (non-slack × PQ)
    # J3: ∂Q/∂δ (PQ × non-slack)          J4: ∂Q/∂V (PQ × PQ)
    return np.block([
        [dp_dtheta[np.ix_(ns, ns)], dp_dv[np.ix_(ns, pq)]],
        [dq_dtheta[np.ix_(pq, ns)], dq_dv[np.ix_(pq, pq)]],
    ])


def solve_correction(
    jacobian: np.ndarray,
    mismatch: np.ndarray,
    epsilon: float = DEFAULT_SINGULAR_EPSILON,
) -> np.ndarray:
    """Solve J·Δx = mismatch.

    Raises SingularJacobian when J has non-finite entries, its reciprocal
    condition number falls below epsilon, or numpy reports it singular.
    """
    if not np.all(np.isfinite(jacobian)):
        raise SingularJacobian("Jacobian contains non-finite entries")

    cond = np.linalg.cond(jacobian)
    rcond = 1.0 / cond if np.isfinite(cond) and cond > 0 else 0.0
    if rcond < epsilon:
        raise SingularJacobian(
            f"Jacobian is numerically singular (rcond={rcond:.3e})", rcond=rcond
        )

    try:
        dx = np.linalg.solve(jacobian, mismatch)
    except np.linalg.LinAlgError as exc:
        raise SingularJacobian(f"linear solve failed: {exc}", rcond=rcond) from exc

    if not np.all(np.isfinite(dx)):
        raise SingularJacobian("correction vector is not finite", rcond=rcond)
    return dx
