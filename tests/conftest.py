"""Shared test fixtures for the load flow engine and API tests."""

from __future__ import annotations

from typing import Callable

import numpy as np
import pytest

from loadflow.network_model import PQ, PV, BranchData, BusData, NetworkModel, Slack


# ======================================================================
# Network builders
# ======================================================================


def two_bus_network(
    p_mw: float = 50.0,
    q_mvar: float = 20.0,
    r_pu: float = 0.01,
    x_pu: float = 0.05,
    b_pu: float = 0.0,
    slack_v: float = 1.0,
    slack_angle: float = 0.0,
    rating_mva: float = 100.0,
) -> NetworkModel:
    """Minimal 2-bus network: slack + PQ load over one line."""
    return NetworkModel(
        buses=[
            BusData(id="slack", kind=Slack(voltage_pu=slack_v, angle_rad=slack_angle)),
            BusData(id="load", kind=PQ(p_mw=p_mw, q_mvar=q_mvar)),
        ],
        branches=[
            BranchData(id="line", from_bus="slack", to_bus="load",
                       r_pu=r_pu, x_pu=x_pu, b_pu=b_pu, rating_mva=rating_mva),
        ],
    )


def four_bus_network() -> NetworkModel:
    """Meshed 4-bus system: slack, PV generator, two PQ loads.

    bus1 ── bus2 ── bus3
             └──── bus4 ──┘
    """
    return NetworkModel(
        buses=[
            BusData(id="bus1", name="Generation", kind=Slack(voltage_pu=1.0), base_kv=138.0),
            BusData(id="bus2", name="Transmission",
                    kind=PV(voltage_setpoint_pu=1.02, p_mw=50.0), base_kv=138.0),
            BusData(id="bus3", name="Distribution", kind=PQ(p_mw=30.0, q_mvar=10.0), base_kv=69.0),
            BusData(id="bus4", name="Industrial", kind=PQ(p_mw=40.0, q_mvar=15.0), base_kv=69.0),
        ],
        branches=[
            BranchData(id="line1", from_bus="bus1", to_bus="bus2",
                       r_pu=0.02, x_pu=0.08, b_pu=0.005, rating_mva=100.0),
            BranchData(id="line2", from_bus="bus2", to_bus="bus3",
                       r_pu=0.03, x_pu=0.12, b_pu=0.008, rating_mva=80.0),
            BranchData(id="line3", from_bus="bus2", to_bus="bus4",
                       r_pu=0.025, x_pu=0.10, b_pu=0.006, rating_mva=90.0),
            BranchData(id="line4", from_bus="bus3", to_bus="bus4",
                       r_pu=0.015, x_pu=0.06, b_pu=0.004, rating_mva=60.0),
        ],
    )


def random_radial_network(rng: np.random.Generator, n_load: int) -> NetworkModel:
    """Well-conditioned radial feeder: each load bus hangs off an earlier bus."""
    buses = [BusData(id="b0", kind=Slack(voltage_pu=1.0))]
    branches = []
    for k in range(1, n_load + 1):
        buses.append(BusData(
            id=f"b{k}",
            kind=PQ(p_mw=float(rng.uniform(2.0, 8.0)), q_mvar=float(rng.uniform(0.5, 3.0))),
        ))
        parent = int(rng.integers(0, k))
        branches.append(BranchData(
            id=f"l{k}",
            from_bus=f"b{parent}",
            to_bus=f"b{k}",
            r_pu=float(rng.uniform(0.005, 0.02)),
            x_pu=float(rng.uniform(0.02, 0.06)),
            b_pu=float(rng.uniform(0.0, 0.02)),
            rating_mva=50.0,
        ))
    return NetworkModel(buses=buses, branches=branches)


# ======================================================================
# Fixtures
# ======================================================================


@pytest.fixture
def two_bus() -> NetworkModel:
    return two_bus_network()


@pytest.fixture
def make_two_bus() -> Callable[..., NetworkModel]:
    """Builder for 2-bus variants (load, impedance, slack setpoint)."""
    return two_bus_network


@pytest.fixture
def four_bus() -> NetworkModel:
    return four_bus_network()


@pytest.fixture
def radial_factory() -> Callable[[int], NetworkModel]:
    """Seeded generator of random radial feeders."""
    def _make(seed: int) -> NetworkModel:
        rng = np.random.default_rng(seed)
        return random_radial_network(rng, n_load=int(rng.integers(2, 7)))
    return _make


@pytest.fixture
def two_bus_payload() -> dict:
    """2-bus network in its structured (JSON) form."""
    return {
        "buses": [
            {"id": "slack", "kind": "slack", "voltageSetpoint": 1.0, "angle": 0.0},
            {"id": "load", "kind": "pq", "p": 50.0, "q": 20.0},
        ],
        "branches": [
            {"id": "line", "from": "slack", "to": "load",
             "r": 0.01, "x": 0.05, "b": 0.0, "ratingMVA": 100.0},
        ],
    }


@pytest.fixture
def four_bus_payload() -> dict:
    return four_bus_network().to_dict()
