"""Load flow endpoints.

Provides:
- POST /validate: structural validation of a network
- POST /solve: Newton-Raphson load flow, synchronous
"""

import logging

from fastapi import APIRouter, HTTPException, status

from loadflow import InvalidNetwork, NetworkModel, SolveConfig, solve
from loadflow_api.core.payloads import network_from_payload, solve_config_from_options
from loadflow_api.schemas.load_flow import LoadFlowResponse, SolveRequest, ValidationResponse
from loadflow_api.schemas.network import NetworkSchema, SolveOptions

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_network(body: NetworkSchema) -> NetworkModel:
    """Network from a request body; 422 listing every structural problem."""
    try:
        return network_from_payload(body.to_payload())
    except InvalidNetwork as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Invalid network", "errors": exc.errors},
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Malformed network", "errors": [str(exc)]},
        )


def parse_options(options: SolveOptions) -> SolveConfig:
    try:
        return solve_config_from_options(options.model_dump())
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc.args[0]))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


@router.post("/validate", response_model=ValidationResponse)
def validate_network(body: NetworkSchema):
    """Check a network for structural problems without solving it."""
    parse_network(body)
    return ValidationResponse(valid=True)


@router.post("/solve", response_model=LoadFlowResponse)
def solve_load_flow(body: SolveRequest):
    """Run Newton-Raphson load flow.

    Non-convergence is a normal response (converged=false, stability
    "unstable"); only malformed input is an error.
    """
    network = parse_network(body.network)
    config = parse_options(body.options)

    result = solve(network, config)
    logger.info(
        "Solved %d-bus network: %s",
        network.n_bus,
        result.termination.value,
        extra={
            "converged": result.converged,
            "iterations": result.iterations,
            "max_mismatch": result.max_mismatch,
            "n_bus": network.n_bus,
            "n_branch": len(network.branches),
        },
    )
    return result.to_dict()
