"""Stability classification of a solved (or diverged) load flow.

Unstable: solver diverged, or any bus outside the marginal band.
Marginal: any bus outside the stable band.
Stable:   everything else.

The bands come from VoltageLimits: normal limits are the stable band
(default ±5 %), contingency limits the marginal band (default ±10 %).
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from loadflow.grid_codes import IEC_DEFAULT, VoltageLimits


class Stability(str, Enum):
    STABLE = "stable"
    MARGINAL = "marginal"
    UNSTABLE = "unstable"


def classify_stability(
    converged: bool,
    voltages: Iterable[float],
    limits: VoltageLimits | None = None,
) -> Stability:
    if limits is None:
        limits = IEC_DEFAULT.voltage

    if not converged:
        return Stability.UNSTABLE

    result = Stability.STABLE
    for v in voltages:
        if limits.check_contingency(v) is not None:
            return Stability.UNSTABLE
        if limits.check_normal(v) is not None:
            result = Stability.MARGINAL
    return result
