"""Celery tasks for queued load flow studies.

Tasks take and return JSON-compatible dicts so they survive the json
serializer; each task owns its own network snapshot.
"""

import logging

from loadflow import solve
from loadflow.contingency import run_contingency_analysis
from loadflow_api.core.payloads import (
    contingency_setup,
    network_from_payload,
    solve_config_from_options,
)
from loadflow_api.worker import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="solve_load_flow")
def solve_load_flow(network: dict, options: dict | None = None) -> dict:
    """Solve one network; InvalidNetwork propagates and fails the task."""
    result = solve(network_from_payload(network), solve_config_from_options(options))
    logger.info(
        "Study finished: %s after %d iterations",
        result.termination.value, result.iterations,
    )
    return result.to_dict()


@celery_app.task(name="run_contingency")
def run_contingency(
    network: dict,
    options: dict | None = None,
    grid_code: str = "iec_default",
    custom_profile: dict | None = None,
) -> dict:
    """N-1 sweep over a network."""
    config, profile = contingency_setup(options, grid_code, custom_profile)
    return run_contingency_analysis(network_from_payload(network), config, profile).to_dict()
