from pydantic import BaseModel

from loadflow_api.schemas.load_flow import LoadFlowResponse


class StudyQueued(BaseModel):
    task_id: str
    status: str = "pending"


class StudyStatus(BaseModel):
    task_id: str
    status: str
    result: LoadFlowResponse | None = None
    error: str | None = None
