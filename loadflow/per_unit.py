"""Per-unit system conversions per IEEE 399 (Brown Book).

Base quantities:
  S_base (MVA) — system-wide, typically 100 MVA for transmission studies
  V_base (kV)  — per voltage level
  I_base = S_base / (√3 × V_base)  (kA)
"""

from __future__ import annotations

import math


def i_base(v_base_kv: float, s_base_mva: float) -> float:
    """Base current in kA: I_base = S / (√3·V)."""
    return s_base_mva / (math.sqrt(3) * v_base_kv)


def rated_current_ka(rating_mva: float, v_base_kv: float) -> float:
    """Thermal current limit in kA for a three-phase branch rating."""
    return rating_mva / (math.sqrt(3) * v_base_kv)


def mw_to_pu(p_mw: float, s_base_mva: float) -> float:
    return p_mw / s_base_mva


def pu_to_mw(p_pu: float, s_base_mva: float) -> float:
    return p_pu * s_base_mva
