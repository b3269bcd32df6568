"""Fault study endpoints.

Provides:
- POST /short-circuit: fault level at every bus for one fault type
- POST /short-circuit/fault: a single fault with its voltage profile
"""

import logging
from dataclasses import replace

from fastapi import APIRouter, HTTPException, status

from loadflow import InvalidNetwork, LoadFlowResult, NetworkModel, solve
from loadflow.short_circuit import FaultConfig, analyze_fault, calculate_short_circuit
from loadflow_api.api.v1.load_flow import parse_network
from loadflow_api.config import settings
from loadflow_api.core.payloads import fault_config_from_options
from loadflow_api.schemas.short_circuit import (
    FaultRequest,
    FaultResponse,
    ShortCircuitRequest,
    ShortCircuitResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _fault_setup(
    body: ShortCircuitRequest,
) -> tuple[NetworkModel, FaultConfig, LoadFlowResult | None]:
    network = parse_network(body.network)
    try:
        config = fault_config_from_options(body.options.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    if not body.use_load_flow:
        return network, config, None

    solve_config = replace(settings.solve_config(), base_mva=config.base_mva, base_kv=config.base_kv)
    prefault = solve(network, solve_config)
    if not prefault.converged:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Pre-fault load flow did not converge ({prefault.termination.value})",
        )
    return network, config, prefault


def _unstudiable(exc: InvalidNetwork) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": "Network cannot be fault-studied", "errors": exc.errors},
    )


@router.post("/short-circuit", response_model=ShortCircuitResponse)
def short_circuit_levels(body: ShortCircuitRequest):
    """Fault level (kA, MVA, Thevenin impedance) at every bus."""
    network, config, prefault = _fault_setup(body)
    try:
        result = calculate_short_circuit(network, body.fault_type, config, prefault)
    except InvalidNetwork as exc:
        raise _unstudiable(exc)
    return result.to_dict()


@router.post("/short-circuit/fault", response_model=FaultResponse)
def single_fault(body: FaultRequest):
    """Apply one fault and report its current and the bus voltages during it."""
    network, config, prefault = _fault_setup(body)
    try:
        result = analyze_fault(network, body.bus_id, body.fault_type, config, prefault)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc.args[0]))
    except InvalidNetwork as exc:
        raise _unstudiable(exc)
    logger.info("Fault study at bus %s (%s)", body.bus_id, body.fault_type.value)
    return result.to_dict()
