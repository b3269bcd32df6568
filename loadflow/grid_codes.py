"""Grid code voltage and thermal limits.

A profile pairs two voltage bands with a thermal loading cap:

  normal band       steady-state operation, also the "stable" band
  contingency band  post-outage operation, also the "marginal" band
  thermal limit     % of branch rating allowed after an outage

Stability classification and N-1 analysis both read their limits from a
profile, so swapping the grid code changes both consistently.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class VoltageLimits:
    """Normal and contingency voltage bands in per-unit."""
    normal_min: float = 0.95
    normal_max: float = 1.05
    contingency_min: float = 0.90
    contingency_max: float = 1.10

    def __post_init__(self) -> None:
        if not (self.contingency_min <= self.normal_min < self.normal_max <= self.contingency_max):
            raise ValueError(
                "voltage limits must satisfy "
                "contingency_min <= normal_min < normal_max <= contingency_max"
            )

    @property
    def normal_band(self) -> tuple[float, float]:
        return (self.normal_min, self.normal_max)

    @property
    def contingency_band(self) -> tuple[float, float]:
        return (self.contingency_min, self.contingency_max)

    @staticmethod
    def _outside(v_pu: float, band: tuple[float, float]) -> str | None:
        lo, hi = band
        if v_pu < lo:
            return "low"
        if v_pu > hi:
            return "high"
        return None

    def check_normal(self, v_pu: float) -> str | None:
        """'low', 'high', or None when inside the normal band (inclusive)."""
        return self._outside(v_pu, self.normal_band)

    def check_contingency(self, v_pu: float) -> str | None:
        return self._outside(v_pu, self.contingency_band)

    def to_dict(self) -> dict[str, list[float]]:
        return {
            "normal": list(self.normal_band),
            "contingency": list(self.contingency_band),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VoltageLimits:
        """Inverse of to_dict; a missing band keeps the IEC default."""
        default = cls()
        n_lo, n_hi = data.get("normal", default.normal_band)
        c_lo, c_hi = data.get("contingency", default.contingency_band)
        return cls(normal_min=n_lo, normal_max=n_hi, contingency_min=c_lo, contingency_max=c_hi)


@dataclass(frozen=True)
class GridCodeProfile:
    """Named set of limits.

    Attributes:
        name: display name, echoed in contingency reports
        standard: document the limits come from
        voltage: normal and contingency bands
        thermal_limit_pct: branch loading cap after an outage
        metadata: free-form notes (region, authority); ignored by comparisons
    """
    name: str
    standard: str
    voltage: VoltageLimits = field(default_factory=VoltageLimits)
    thermal_limit_pct: float = 100.0
    metadata: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def summary(self, key: str) -> dict[str, Any]:
        return {
            "key": key,
            "name": self.name,
            "standard": self.standard,
            "voltage_normal": list(self.voltage.normal_band),
            "thermal_limit_pct": self.thermal_limit_pct,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "standard": self.standard,
            "voltage_limits": self.voltage.to_dict(),
            "thermal_limit_pct": self.thermal_limit_pct,
            "metadata": dict(self.metadata),
        }


# ======================================================================
# Built-in profiles
# ======================================================================

IEC_DEFAULT = GridCodeProfile(
    name="IEC Default",
    standard="IEC 61727 / IEC 62116",
)

FIJI_GRID_CODE = GridCodeProfile(
    name="Fiji Grid Code",
    standard="Fiji Electricity Authority Grid Code 2019",
    voltage=VoltageLimits(normal_min=0.94, normal_max=1.06),
    thermal_limit_pct=90.0,
    metadata={"region": "Pacific Islands", "authority": "Fiji Electricity Authority"},
)

IEEE_1547 = GridCodeProfile(
    name="IEEE 1547",
    standard="IEEE 1547-2018 (Interconnection of DER)",
    # Category II abnormal-performance floor
    voltage=VoltageLimits(contingency_min=0.88),
    metadata={"region": "North America", "notes": "Category II assumed."},
)

PROFILES: dict[str, GridCodeProfile] = {
    "iec_default": IEC_DEFAULT,
    "fiji": FIJI_GRID_CODE,
    "ieee_1547": IEEE_1547,
}


def get_profile(name: str) -> GridCodeProfile:
    """Look up a built-in profile; KeyError lists the valid keys."""
    try:
        return PROFILES[name]
    except KeyError:
        known = ", ".join(sorted(PROFILES))
        raise KeyError(f"Unknown grid code profile '{name}'. Available: {known}") from None


def list_profiles() -> list[dict[str, Any]]:
    return [profile.summary(key) for key, profile in PROFILES.items()]


def build_custom_profile(config: dict[str, Any]) -> GridCodeProfile:
    """Profile from a request dict.

    Keys: name, standard, voltage_limits ({"normal": [lo, hi],
    "contingency": [lo, hi]}), thermal_limit_pct, metadata. Anything
    missing falls back to the IEC defaults.
    """
    return GridCodeProfile(
        name=config.get("name", "Custom"),
        standard=config.get("standard", "Custom Standard"),
        voltage=VoltageLimits.from_dict(config.get("voltage_limits") or {}),
        thermal_limit_pct=float(config.get("thermal_limit_pct", IEC_DEFAULT.thermal_limit_pct)),
        metadata=dict(config.get("metadata") or {}),
    )
