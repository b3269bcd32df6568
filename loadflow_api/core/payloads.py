"""Translate request payloads into engine objects.

Shared by the HTTP layer and the Celery tasks, which both receive plain
JSON-compatible dicts.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from loadflow import NetworkModel, SolveConfig, network_from_dict
from loadflow.grid_codes import GridCodeProfile, build_custom_profile, get_profile
from loadflow.short_circuit import FaultConfig
from loadflow_api.config import settings


def solve_config_from_options(options: dict[str, Any] | None) -> SolveConfig:
    """Settings defaults overlaid with per-request options.

    Raises ValueError for inconsistent values and KeyError for an unknown
    grid code.
    """
    options = {k: v for k, v in (options or {}).items() if v is not None}
    grid_code = get_profile(options.pop("grid_code", settings.grid_code))

    config = settings.solve_config()
    overrides: dict[str, Any] = {"voltage_limits": grid_code.voltage}
    for key in ("tolerance_pu", "max_iterations", "base_mva", "base_kv"):
        if key in options:
            overrides[key] = options[key]
    if "voltage_clamp_pu" in options:
        overrides["voltage_clamp_pu"] = tuple(options["voltage_clamp_pu"])
    return replace(config, **overrides)


def grid_code_from_request(name: str, custom_profile: dict[str, Any] | None) -> GridCodeProfile:
    if name == "custom":
        if custom_profile is None:
            raise ValueError("custom_profile is required when grid_code is 'custom'")
        return build_custom_profile(custom_profile)
    return get_profile(name)


def network_from_payload(payload: dict[str, Any]) -> NetworkModel:
    """Parse and validate a network payload (raises ValueError/InvalidNetwork)."""
    network = network_from_dict(payload)
    network.validate()
    return network


def contingency_setup(
    options: dict[str, Any] | None,
    grid_code: str,
    custom_profile: dict[str, Any] | None = None,
) -> tuple[SolveConfig, GridCodeProfile]:
    """Solver config and grid code for an N-1 sweep.

    The grid code's voltage bands drive both violation checks and the
    stability label of every outage case.
    """
    profile = grid_code_from_request(grid_code, custom_profile)
    options = {k: v for k, v in (options or {}).items() if k != "grid_code"}
    config = replace(solve_config_from_options(options), voltage_limits=profile.voltage)
    return config, profile


def fault_config_from_options(options: dict[str, Any] | None) -> FaultConfig:
    """Fault study settings; bases default to the solver settings.

    Impedances arrive as [R, X] pairs.
    """
    options = {k: v for k, v in (options or {}).items() if v is not None}
    defaults = settings.solve_config()
    overrides: dict[str, Any] = {"base_mva": defaults.base_mva, "base_kv": defaults.base_kv}
    for key in (
        "base_mva", "base_kv", "prefault_voltage_pu",
        "generator_reactance_pu", "zero_sequence_ratio",
    ):
        if key in options:
            overrides[key] = options[key]
    for key in ("grid_impedance_pu", "fault_impedance_pu"):
        if key in options:
            r, x = options[key]
            overrides[key] = complex(r, x)
    return FaultConfig(**overrides)
