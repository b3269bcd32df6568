"""Fault analysis from the bus impedance matrix (IEC 60909 style).

The Y-bus is extended with source admittances to ground:
  slack bus   external grid Thevenin impedance Z_grid
  PV buses    machine subtransient reactance jX"d

Z_bus = inv(Y_bus), and the Thevenin impedance seen from bus k is Z_kk.

No separate sequence networks are modelled: Z1 = Z2 = Z_kk and
Z0 = k0·Z_kk. For a fault at bus k with pre-fault voltage V_k and fault
impedance Z_f:
  three-phase       I_f = V_k / (Z1 + Z_f)
  line-to-ground    I_f = 3·V_k / (Z1 + Z2 + Z0 + 3·Z_f)
  line-to-line      I_f = √3·V_k / (Z1 + Z2 + Z_f)

During the fault the positive-sequence voltage at bus i is
  V_i = V_i,pre − Z_ik·I1
with I1 the positive-sequence component of the fault current.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np

from loadflow.admittance import build_admittance_matrix
from loadflow.network_model import BusType, InvalidNetwork, NetworkModel, validate_network
from loadflow.per_unit import i_base
from loadflow.results import LoadFlowResult

logger = logging.getLogger(__name__)


class FaultType(str, Enum):
    THREE_PHASE = "three_phase"
    LINE_TO_GROUND = "line_to_ground"
    LINE_TO_LINE = "line_to_line"


@dataclass(frozen=True)
class FaultConfig:
    """Fault study settings.

    Attributes:
        base_mva: system power base
        base_kv: voltage base for buses that do not set their own
        prefault_voltage_pu: flat pre-fault voltage (the IEC 60909 factor c),
            used when no load flow result is supplied
        grid_impedance_pu: Thevenin impedance of the external grid at the slack
        generator_reactance_pu: X"d of the machines at PV buses
        zero_sequence_ratio: Z0 / Z1 for line-to-ground faults
        fault_impedance_pu: impedance of the fault path (0 for a bolted fault)
    """
    base_mva: float = 100.0
    base_kv: float = 138.0
    prefault_voltage_pu: float = 1.0
    grid_impedance_pu: complex = complex(0.001, 0.01)
    generator_reactance_pu: float = 0.2
    zero_sequence_ratio: float = 1.0
    fault_impedance_pu: complex = 0j

    def __post_init__(self) -> None:
        object.__setattr__(self, "grid_impedance_pu", complex(self.grid_impedance_pu))
        object.__setattr__(self, "fault_impedance_pu", complex(self.fault_impedance_pu))
        if not self.base_mva > 0:
            raise ValueError("base_mva must be positive")
        if not self.base_kv > 0:
            raise ValueError("base_kv must be positive")
        if not self.prefault_voltage_pu > 0:
            raise ValueError("prefault_voltage_pu must be positive")
        if self.grid_impedance_pu == 0:
            raise ValueError("grid_impedance_pu must be non-zero")
        if not self.generator_reactance_pu > 0:
            raise ValueError("generator_reactance_pu must be positive")
        if not self.zero_sequence_ratio > 0:
            raise ValueError("zero_sequence_ratio must be positive")


def _complex_pair(z: complex) -> list[float]:
    return [round(z.real, 6), round(z.imag, 6)]


@dataclass(frozen=True)
class BusFaultLevel:
    """Fault level at a single bus."""
    bus_id: str
    i_sc_ka: float
    s_sc_mva: float
    z_th_pu: complex

    def to_dict(self) -> dict[str, Any]:
        return {
            "bus_id": self.bus_id,
            "i_sc_ka": round(self.i_sc_ka, 3),
            "s_sc_mva": round(self.s_sc_mva, 3),
            "z_th_pu": _complex_pair(self.z_th_pu),
        }


@dataclass(frozen=True)
class ShortCircuitResult:
    """Fault levels for every bus, in bus order."""
    fault_type: FaultType
    levels: tuple[BusFaultLevel, ...]

    def bus(self, bus_id: str) -> BusFaultLevel:
        for level in self.levels:
            if level.bus_id == bus_id:
                return level
        raise KeyError(f"Bus '{bus_id}' not found")

    def to_dict(self) -> dict[str, Any]:
        return {
            "fault_type": self.fault_type.value,
            "buses": [level.to_dict() for level in self.levels],
        }


@dataclass(frozen=True)
class FaultResult:
    """A single fault and the bus voltages while it persists."""
    bus_id: str
    fault_type: FaultType
    fault_current_pu: float
    fault_current_ka: float
    z_th_pu: complex
    # (bus id, positive-sequence |V| during the fault) in bus order
    voltage_profile: tuple[tuple[str, float], ...]

    def voltage(self, bus_id: str) -> float:
        for bid, v in self.voltage_profile:
            if bid == bus_id:
                return v
        raise KeyError(f"Bus '{bus_id}' not found")

    def to_dict(self) -> dict[str, Any]:
        return {
            "bus_id": self.bus_id,
            "fault_type": self.fault_type.value,
            "fault_current_pu": round(self.fault_current_pu, 4),
            "fault_current_ka": round(self.fault_current_ka, 3),
            "z_th_pu": _complex_pair(self.z_th_pu),
            "voltage_profile": [
                {"bus_id": bid, "voltage_pu": round(v, 4)} for bid, v in self.voltage_profile
            ],
        }


def fault_impedance_matrix(network: NetworkModel, config: FaultConfig) -> np.ndarray:
    """Z_bus of the network with the fault sources tied to ground.

    Raises:
        InvalidNetwork: malformed or islanded network, or a singular Y-bus
    """
    validate_network(network)
    if not network.is_connected():
        raise InvalidNetwork(["network is islanded; every bus needs a path to the slack bus"])

    y_bus = build_admittance_matrix(network)
    y_machine = 1.0 / complex(0.0, config.generator_reactance_pu)
    for i, bus in enumerate(network.buses):
        if bus.bus_type == BusType.SLACK:
            y_bus[i, i] += 1.0 / config.grid_impedance_pu
        elif bus.bus_type == BusType.PV:
            y_bus[i, i] += y_machine

    try:
        return np.linalg.inv(y_bus)
    except np.linalg.LinAlgError as exc:
        raise InvalidNetwork([f"fault impedance matrix is singular: {exc}"]) from exc


def _prefault_voltages(
    network: NetworkModel,
    config: FaultConfig,
    prefault: LoadFlowResult | None,
) -> np.ndarray:
    if prefault is None:
        return np.full(network.n_bus, config.prefault_voltage_pu, dtype=complex)
    states = [prefault.bus(bus.id) for bus in network.buses]
    return np.array([b.voltage_pu * np.exp(1j * b.angle_rad) for b in states], dtype=complex)


def _fault_current(
    fault_type: FaultType,
    v_pre: complex,
    z_th: complex,
    config: FaultConfig,
) -> tuple[complex, float]:
    """Positive-sequence current I1 and fault current magnitude |I_f|, in pu."""
    z_f = config.fault_impedance_pu
    if fault_type == FaultType.THREE_PHASE:
        i1 = v_pre / (z_th + z_f)
        return i1, abs(i1)
    if fault_type == FaultType.LINE_TO_GROUND:
        z0 = config.zero_sequence_ratio * z_th
        i1 = v_pre / (2 * z_th + z0 + 3 * z_f)
        return i1, 3 * abs(i1)
    i1 = v_pre / (2 * z_th + z_f)
    return i1, math.sqrt(3) * abs(i1)


def calculate_short_circuit(
    network: NetworkModel,
    fault_type: FaultType = FaultType.THREE_PHASE,
    config: FaultConfig | None = None,
    prefault: LoadFlowResult | None = None,
) -> ShortCircuitResult:
    """Fault level at every bus for one fault type.

    Args:
        network: network to study
        fault_type: kind of fault applied at each bus in turn
        config: sources, bases and fault impedance (defaults if None)
        prefault: load flow whose bus voltages are the pre-fault state;
            a flat `config.prefault_voltage_pu` when None
    """
    config = config or FaultConfig()
    z_bus = fault_impedance_matrix(network, config)
    v_pre = _prefault_voltages(network, config, prefault)

    levels = []
    for k, bus in enumerate(network.buses):
        z_th = complex(z_bus[k, k])
        _, i_f_pu = _fault_current(fault_type, v_pre[k], z_th, config)
        base_kv = bus.base_kv or config.base_kv
        i_sc_ka = i_f_pu * i_base(base_kv, config.base_mva)
        levels.append(BusFaultLevel(
            bus_id=bus.id,
            i_sc_ka=i_sc_ka,
            s_sc_mva=math.sqrt(3) * base_kv * i_sc_ka,
            z_th_pu=z_th,
        ))

    logger.info("Computed %s fault levels for %d buses", fault_type.value, network.n_bus)
    return ShortCircuitResult(fault_type=fault_type, levels=tuple(levels))


def analyze_fault(
    network: NetworkModel,
    bus_id: str,
    fault_type: FaultType = FaultType.THREE_PHASE,
    config: FaultConfig | None = None,
    prefault: LoadFlowResult | None = None,
) -> FaultResult:
    """Apply one fault at `bus_id` and report its current and voltage profile.

    Raises KeyError for an unknown bus and InvalidNetwork for a network
    that cannot be studied.
    """
    config = config or FaultConfig()
    k = network.index_of(bus_id)
    z_bus = fault_impedance_matrix(network, config)
    v_pre = _prefault_voltages(network, config, prefault)

    z_th = complex(z_bus[k, k])
    i1, i_f_pu = _fault_current(fault_type, v_pre[k], z_th, config)
    v_fault = v_pre - z_bus[:, k] * i1

    base_kv = network.buses[k].base_kv or config.base_kv
    profile = tuple(
        (bus.id, float(abs(v_fault[i]))) for i, bus in enumerate(network.buses)
    )
    logger.info(
        "%s fault at bus %s: %.3f pu", fault_type.value, bus_id, i_f_pu,
    )
    return FaultResult(
        bus_id=bus_id,
        fault_type=fault_type,
        fault_current_pu=i_f_pu,
        fault_current_ka=i_f_pu * i_base(base_kv, config.base_mva),
        z_th_pu=z_th,
        voltage_profile=profile,
    )
