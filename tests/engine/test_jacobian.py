"""Tests for the analytic Jacobian, mismatch evaluation and the guarded solve."""

from __future__ import annotations

import numpy as np
import pytest

from loadflow.admittance import build_admittance_matrix
from loadflow.jacobian import SingularJacobian, build_jacobian, solve_correction
from loadflow.mismatch import (
    BusClassification,
    calculate_injections,
    evaluate_mismatch,
    specified_injections,
)
from loadflow.network_model import PV, BranchData, BusData, NetworkModel, Slack


def _calc_vector(y_bus, V, theta, classes):
    """Calculated P at non-slack buses and Q at PQ buses."""
    p, q = calculate_injections(y_bus, V, theta)
    return np.concatenate([p[list(classes.non_slack)], q[list(classes.pq)]])


def _perturbed_state(network, seed=7):
    rng = np.random.default_rng(seed)
    n = network.n_bus
    return rng.uniform(0.95, 1.05, n), rng.uniform(-0.1, 0.1, n)


# ======================================================================
# Bus classification and mismatch
# ======================================================================


class TestMismatch:

    def test_classification(self, four_bus):
        classes = BusClassification.from_network(four_bus)
        assert classes.slack == 0
        assert classes.non_slack == (1, 2, 3)
        assert classes.pq == (2, 3)
        assert classes.n_angle == 3
        assert classes.n_vars == 5

    def test_specified_sign_convention(self, four_bus):
        """PV generation is positive, PQ demand negative (per-unit)."""
        p_spec, q_spec = specified_injections(four_bus, 100.0)
        np.testing.assert_allclose(p_spec, [0.0, 0.5, -0.3, -0.4])
        np.testing.assert_allclose(q_spec, [0.0, 0.0, -0.1, -0.15])

    def test_flat_start_mismatch_equals_spec_without_charging(self, two_bus):
        """With every bus at 1∠0 and no charging, calculated injections vanish."""
        y_bus = build_admittance_matrix(two_bus)
        classes = BusClassification.from_network(two_bus)
        p_spec, q_spec = specified_injections(two_bus, 100.0)
        mm = evaluate_mismatch(y_bus, np.ones(2), np.zeros(2), p_spec, q_spec, classes)
        np.testing.assert_allclose(mm.vector, [-0.5, -0.2], atol=1e-12)
        assert mm.max_abs == pytest.approx(0.5)

    def test_injections_match_complex_power(self, four_bus):
        y_bus = build_admittance_matrix(four_bus)
        V, theta = _perturbed_state(four_bus)
        p, q = calculate_injections(y_bus, V, theta)

        v_c = V * np.exp(1j * theta)
        for i in range(four_bus.n_bus):
            s_i = v_c[i] * np.conj(sum(y_bus[i, j] * v_c[j] for j in range(four_bus.n_bus)))
            assert p[i] == pytest.approx(s_i.real, abs=1e-12)
            assert q[i] == pytest.approx(s_i.imag, abs=1e-12)


# ======================================================================
# Jacobian
# ======================================================================


class TestJacobian:

    def test_shape(self, four_bus):
        y_bus = build_admittance_matrix(four_bus)
        classes = BusClassification.from_network(four_bus)
        V, theta = _perturbed_state(four_bus)
        p, q = calculate_injections(y_bus, V, theta)
        J = build_jacobian(y_bus, V, theta, p, q, classes)
        assert J.shape == (classes.n_vars, classes.n_vars)

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_matches_finite_differences(self, four_bus, seed):
        """Analytic J agrees with central differences of the injections."""
        y_bus = build_admittance_matrix(four_bus)
        classes = BusClassification.from_network(four_bus)
        V, theta = _perturbed_state(four_bus, seed)
        p, q = calculate_injections(y_bus, V, theta)
        J = build_jacobian(y_bus, V, theta, p, q, classes)

        h = 1e-6
        columns = [("theta", i) for i in classes.non_slack] + [("v", i) for i in classes.pq]
        numeric = np.zeros_like(J)
        for col, (var, i) in enumerate(columns):
            plus_v, minus_v = V.copy(), V.copy()
            plus_t, minus_t = theta.copy(), theta.copy()
            if var == "theta":
                plus_t[i] += h
                minus_t[i] -= h
            else:
                plus_v[i] += h
                minus_v[i] -= h
            numeric[:, col] = (
                _calc_vector(y_bus, plus_v, plus_t, classes)
                - _calc_vector(y_bus, minus_v, minus_t, classes)
            ) / (2 * h)

        np.testing.assert_allclose(J, numeric, atol=1e-5)

    def test_no_pq_buses(self):
        """Slack + PV only: J reduces to ∂P/∂δ."""
        net = NetworkModel(
            buses=[BusData(id="s", kind=Slack()), BusData(id="g", kind=PV(1.01, 20.0))],
            branches=[BranchData(id="l", from_bus="s", to_bus="g", r_pu=0.01, x_pu=0.1)],
        )
        y_bus = build_admittance_matrix(net)
        classes = BusClassification.from_network(net)
        V = np.array([1.0, 1.01])
        theta = np.zeros(2)
        p, q = calculate_injections(y_bus, V, theta)
        assert build_jacobian(y_bus, V, theta, p, q, classes).shape == (1, 1)


# ======================================================================
# Guarded linear solve
# ======================================================================


class TestSolveCorrection:

    def test_regular_system(self):
        J = np.array([[4.0, 1.0], [2.0, 3.0]])
        dx = solve_correction(J, np.array([1.0, 2.0]))
        np.testing.assert_allclose(J @ dx, [1.0, 2.0])

    def test_singular_matrix(self):
        J = np.array([[1.0, 2.0], [2.0, 4.0]])
        with pytest.raises(SingularJacobian) as exc_info:
            solve_correction(J, np.array([1.0, 1.0]))
        assert exc_info.value.rcond < 1e-12

    def test_zero_row(self):
        J = np.array([[1.0, 0.0], [0.0, 0.0]])
        with pytest.raises(SingularJacobian):
            solve_correction(J, np.array([1.0, 1.0]))

    def test_ill_conditioned_below_epsilon(self):
        """Threshold is configurable."""
        J = np.diag([1.0, 1e-8])
        solve_correction(J, np.ones(2))
        with pytest.raises(SingularJacobian, match="numerically singular"):
            solve_correction(J, np.ones(2), epsilon=1e-6)

    def test_non_finite_entries(self):
        J = np.array([[1.0, np.nan], [0.0, 1.0]])
        with pytest.raises(SingularJacobian, match="non-finite"):
            solve_correction(J, np.ones(2))

    def test_singular_is_arithmetic_error(self):
        assert issubclass(SingularJacobian, ArithmeticError)
