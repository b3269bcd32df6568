"""Network topology model: buses, branches, validation.

Bus kinds are a tagged union (Slack | PV | PQ) so every bus carries only the
fields that make sense for its role. A NetworkModel is a frozen snapshot;
derived copies (e.g. an outage case) are new instances.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Any, ClassVar, Union


class InvalidNetwork(ValueError):
    """Structural problem with a network; raised before any iteration."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class BusType(str, Enum):
    SLACK = "slack"
    PV = "pv"
    PQ = "pq"


@dataclass(frozen=True)
class Slack:
    """Reference bus: fixed |V| and angle, absorbs the power imbalance."""
    voltage_pu: float = 1.0
    angle_rad: float = 0.0
    bus_type: ClassVar[BusType] = BusType.SLACK


@dataclass(frozen=True)
class PV:
    """Generator bus: fixed |V|, scheduled real generation in MW."""
    voltage_setpoint_pu: float = 1.0
    p_mw: float = 0.0
    bus_type: ClassVar[BusType] = BusType.PV


@dataclass(frozen=True)
class PQ:
    """Load bus: real and reactive demand (positive = drawn from network)."""
    p_mw: float = 0.0
    q_mvar: float = 0.0
    bus_type: ClassVar[BusType] = BusType.PQ


BusKind = Union[Slack, PV, PQ]


@dataclass(frozen=True)
class BusData:
    """Single bus definition."""
    id: str
    kind: BusKind
    name: str = ""
    # Voltage level for kA conversions; None falls back to the solve config
    base_kv: float | None = None

    @property
    def bus_type(self) -> BusType:
        return self.kind.bus_type


@dataclass(frozen=True)
class BranchData:
    """Single branch (line or cable) in per-unit on the system base."""
    id: str
    from_bus: str
    to_bus: str
    r_pu: float
    x_pu: float
    # Total line charging, split half-and-half at each end
    b_pu: float = 0.0
    rating_mva: float = 0.0

    @property
    def z_pu(self) -> complex:
        return complex(self.r_pu, self.x_pu)


@dataclass(frozen=True)
class NetworkModel:
    """Complete network snapshot."""
    buses: tuple[BusData, ...] = field(default_factory=tuple)
    branches: tuple[BranchData, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "buses", tuple(self.buses))
        object.__setattr__(self, "branches", tuple(self.branches))

    @property
    def n_bus(self) -> int:
        return len(self.buses)

    @cached_property
    def bus_index(self) -> dict[str, int]:
        """Map bus id → position in bus order (the Y-bus row)."""
        return {bus.id: i for i, bus in enumerate(self.buses)}

    def index_of(self, bus_id: str) -> int:
        try:
            return self.bus_index[bus_id]
        except KeyError:
            raise KeyError(f"Bus '{bus_id}' not found") from None

    def get_bus(self, bus_id: str) -> BusData:
        return self.buses[self.index_of(bus_id)]

    def get_branch(self, branch_id: str) -> BranchData:
        for br in self.branches:
            if br.id == branch_id:
                return br
        raise KeyError(f"Branch '{branch_id}' not found")

    @property
    def slack_bus(self) -> int:
        """Index of the slack bus."""
        for i, bus in enumerate(self.buses):
            if bus.bus_type == BusType.SLACK:
                return i
        raise InvalidNetwork(["no slack bus defined"])

    @property
    def pv_buses(self) -> list[int]:
        return [i for i, b in enumerate(self.buses) if b.bus_type == BusType.PV]

    @property
    def pq_buses(self) -> list[int]:
        return [i for i, b in enumerate(self.buses) if b.bus_type == BusType.PQ]

    def validate(self) -> None:
        validate_network(self)

    def without_branch(self, branch_id: str) -> NetworkModel:
        """Copy of the network with one branch taken out of service."""
        self.get_branch(branch_id)
        return NetworkModel(
            buses=self.buses,
            branches=tuple(br for br in self.branches if br.id != branch_id),
        )

    def is_connected(self) -> bool:
        """True when every bus is reachable from the slack bus."""
        n = self.n_bus
        if n <= 1:
            return True

        adj: dict[int, set[int]] = {i: set() for i in range(n)}
        for br in self.branches:
            i = self.bus_index[br.from_bus]
            j = self.bus_index[br.to_bus]
            adj[i].add(j)
            adj[j].add(i)

        start = self.slack_bus
        visited = {start}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for neighbor in adj[current]:
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        return len(visited) == n

    def to_dict(self) -> dict[str, Any]:
        return network_to_dict(self)


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def _bus_errors(bus: BusData) -> list[str]:
    errors = []
    kind = bus.kind
    if isinstance(kind, Slack):
        if not _finite(kind.voltage_pu, kind.angle_rad):
            errors.append(f"bus '{bus.id}': non-finite slack setpoint")
        elif kind.voltage_pu <= 0:
            errors.append(f"bus '{bus.id}': slack voltage must be positive")
    elif isinstance(kind, PV):
        if not _finite(kind.voltage_setpoint_pu, kind.p_mw):
            errors.append(f"bus '{bus.id}': non-finite PV setpoint")
        elif kind.voltage_setpoint_pu <= 0:
            errors.append(f"bus '{bus.id}': PV voltage setpoint must be positive")
    elif isinstance(kind, PQ):
        if not _finite(kind.p_mw, kind.q_mvar):
            errors.append(f"bus '{bus.id}': non-finite PQ demand")
    else:
        errors.append(f"bus '{bus.id}': unknown bus kind {type(kind).__name__}")

    if bus.base_kv is not None and not (math.isfinite(bus.base_kv) and bus.base_kv > 0):
        errors.append(f"bus '{bus.id}': base kV must be positive")
    return errors


def _branch_errors(br: BranchData, known: set[str]) -> list[str]:
    errors = []
    for end, bus_id in (("from", br.from_bus), ("to", br.to_bus)):
        if bus_id not in known:
            errors.append(f"branch '{br.id}': {end} bus '{bus_id}' does not exist")
    if br.from_bus == br.to_bus:
        errors.append(f"branch '{br.id}': connects bus '{br.from_bus}' to itself")

    if not _finite(br.r_pu, br.x_pu, br.b_pu, br.rating_mva):
        errors.append(f"branch '{br.id}': non-finite parameter")
        return errors
    if br.r_pu < 0:
        errors.append(f"branch '{br.id}': negative resistance {br.r_pu}")
    if br.x_pu < 0:
        errors.append(f"branch '{br.id}': negative reactance {br.x_pu}")
    if br.r_pu == 0 and br.x_pu == 0:
        errors.append(f"branch '{br.id}': zero impedance")
    if br.rating_mva < 0:
        errors.append(f"branch '{br.id}': negative rating {br.rating_mva}")
    return errors


def validate_network(network: NetworkModel) -> None:
    """Check network structure, raising InvalidNetwork with every problem found."""
    errors: list[str] = []

    seen: set[str] = set()
    for bus in network.buses:
        if bus.id in seen:
            errors.append(f"duplicate bus id '{bus.id}'")
        seen.add(bus.id)
        errors.extend(_bus_errors(bus))

    n_slack = sum(1 for b in network.buses if b.bus_type == BusType.SLACK)
    if n_slack == 0:
        errors.append("no slack bus defined")
    elif n_slack > 1:
        errors.append(f"{n_slack} slack buses defined, exactly one required")

    seen_branches: set[str] = set()
    for br in network.branches:
        if br.id in seen_branches:
            errors.append(f"duplicate branch id '{br.id}'")
        seen_branches.add(br.id)
        errors.extend(_branch_errors(br, seen))

    if errors:
        raise InvalidNetwork(errors)


# ======================================================================
# JSON-compatible form
# ======================================================================


def _bus_to_dict(bus: BusData) -> dict[str, Any]:
    kind = bus.kind
    d: dict[str, Any] = {"id": bus.id, "kind": kind.bus_type.value}
    if isinstance(kind, Slack):
        d["voltageSetpoint"] = kind.voltage_pu
        d["angle"] = kind.angle_rad
    elif isinstance(kind, PV):
        d["voltageSetpoint"] = kind.voltage_setpoint_pu
        d["p"] = kind.p_mw
    else:
        d["p"] = kind.p_mw
        d["q"] = kind.q_mvar
    if bus.name:
        d["name"] = bus.name
    if bus.base_kv is not None:
        d["baseKV"] = bus.base_kv
    return d


_COMMON_BUS_FIELDS = {"id", "kind", "name", "baseKV"}
_KIND_FIELDS = {
    BusType.SLACK: {"voltageSetpoint", "angle"},
    BusType.PV: {"voltageSetpoint", "p"},
    BusType.PQ: {"p", "q"},
}


def _bus_from_dict(d: dict[str, Any]) -> BusData:
    try:
        bus_type = BusType(str(d["kind"]).lower())
    except KeyError:
        raise ValueError(f"bus {d.get('id')!r}: missing 'kind'") from None
    except ValueError:
        raise ValueError(f"bus {d.get('id')!r}: unknown kind {d['kind']!r}") from None

    stray = set(d) - _COMMON_BUS_FIELDS - _KIND_FIELDS[bus_type]
    if stray:
        raise ValueError(
            f"bus {d.get('id')!r}: fields {sorted(stray)} do not apply to {bus_type.value} buses"
        )

    kind: BusKind
    if bus_type == BusType.SLACK:
        kind = Slack(
            voltage_pu=float(d.get("voltageSetpoint", 1.0)),
            angle_rad=float(d.get("angle", 0.0)),
        )
    elif bus_type == BusType.PV:
        kind = PV(
            voltage_setpoint_pu=float(d.get("voltageSetpoint", 1.0)),
            p_mw=float(d.get("p", 0.0)),
        )
    else:
        kind = PQ(p_mw=float(d.get("p", 0.0)), q_mvar=float(d.get("q", 0.0)))

    base_kv = d.get("baseKV")
    return BusData(
        id=str(d["id"]),
        kind=kind,
        name=d.get("name", ""),
        base_kv=float(base_kv) if base_kv is not None else None,
    )


def network_to_dict(network: NetworkModel) -> dict[str, Any]:
    """Serialize to the plain structured format used by external callers."""
    return {
        "buses": [_bus_to_dict(bus) for bus in network.buses],
        "branches": [
            {
                "id": br.id,
                "from": br.from_bus,
                "to": br.to_bus,
                "r": br.r_pu,
                "x": br.x_pu,
                "b": br.b_pu,
                "ratingMVA": br.rating_mva,
            }
            for br in network.branches
        ],
    }


def network_from_dict(data: dict[str, Any]) -> NetworkModel:
    """Build a NetworkModel from its structured form.

    Raises ValueError for malformed payloads (missing keys, unknown bus
    kinds). The result is not validated; call validate() before solving.
    """
    try:
        buses = [_bus_from_dict(bd) for bd in data.get("buses", [])]
        branches = [
            BranchData(
                id=str(brd["id"]),
                from_bus=str(brd["from"]),
                to_bus=str(brd["to"]),
                r_pu=float(brd["r"]),
                x_pu=float(brd["x"]),
                b_pu=float(brd.get("b", 0.0)),
                rating_mva=float(brd.get("ratingMVA", 0.0)),
            )
            for brd in data.get("branches", [])
        ]
    except KeyError as exc:
        raise ValueError(f"missing field {exc.args[0]!r} in network payload") from None
    return NetworkModel(buses=tuple(buses), branches=tuple(branches))
