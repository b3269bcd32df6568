"""Queued load flow studies (Celery).

Provides:
- POST /studies: validate the network, then queue a solve
- GET /studies/{task_id}: task state and result when ready

A new study never cancels an older one; callers simply ignore results
they have superseded.
"""

from celery.result import AsyncResult
from fastapi import APIRouter, status

from loadflow_api.api.v1.load_flow import parse_network, parse_options
from loadflow_api.schemas.load_flow import SolveRequest
from loadflow_api.schemas.study import StudyQueued, StudyStatus
from loadflow_api.worker import celery_app, tasks

router = APIRouter()


@router.post("/studies", response_model=StudyQueued, status_code=status.HTTP_202_ACCEPTED)
def queue_study(body: SolveRequest):
    parse_network(body.network)
    parse_options(body.options)

    task = tasks.solve_load_flow.delay(
        body.network.to_payload(),
        body.options.model_dump(exclude_none=True),
    )
    return StudyQueued(task_id=task.id)


@router.get("/studies/{task_id}", response_model=StudyStatus)
def get_study(task_id: str):
    res = AsyncResult(task_id, app=celery_app)
    state = res.state

    if state == "SUCCESS":
        return StudyStatus(task_id=task_id, status="completed", result=res.result)
    if state == "FAILURE":
        return StudyStatus(task_id=task_id, status="failed", error=str(res.result))
    return StudyStatus(task_id=task_id, status=state.lower())
