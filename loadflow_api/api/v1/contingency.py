"""N-1 Contingency Analysis and Grid Code endpoints.

Provides:
- POST /contingency-analysis: Run N-1 contingency analysis
- GET /grid-codes: List available grid code profiles
- GET /grid-codes/{key}: Get detailed grid code profile
"""

from fastapi import APIRouter, HTTPException, status

from loadflow.contingency import run_contingency_analysis
from loadflow.grid_codes import get_profile, list_profiles
from loadflow_api.api.v1.load_flow import parse_network
from loadflow_api.core.payloads import contingency_setup
from loadflow_api.schemas.contingency import (
    ContingencyRequest,
    ContingencyResponse,
    GridCodeDetailResponse,
    GridCodeListResponse,
)

router = APIRouter()
grid_codes_router = APIRouter()


@router.post("/contingency-analysis", response_model=ContingencyResponse)
def contingency_analysis(body: ContingencyRequest):
    """Run N-1 contingency analysis on the submitted network.

    Removes each branch one at a time, re-runs load flow, and checks
    for voltage/thermal violations against the specified grid code.
    """
    network = parse_network(body.network)

    try:
        config, grid_code = contingency_setup(
            body.options.model_dump(), body.grid_code, body.custom_profile
        )
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc.args[0]))
    except (ValueError, IndexError, TypeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid contingency settings: {exc}",
        )

    result = run_contingency_analysis(network, config, grid_code)
    return result.to_dict()


@grid_codes_router.get("/grid-codes", response_model=GridCodeListResponse)
async def list_grid_codes():
    """List available grid code profiles."""
    return {"profiles": list_profiles()}


@grid_codes_router.get("/grid-codes/{key}", response_model=GridCodeDetailResponse)
async def get_grid_code(key: str):
    """Get detailed grid code profile by key."""
    try:
        profile = get_profile(key)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc.args[0]))
    return profile.to_dict()
