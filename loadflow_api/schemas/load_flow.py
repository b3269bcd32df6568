from pydantic import BaseModel, Field

from loadflow_api.schemas.network import NetworkSchema, SolveOptions


class SolveRequest(BaseModel):
    network: NetworkSchema
    options: SolveOptions = Field(default_factory=SolveOptions)


class ValidationResponse(BaseModel):
    valid: bool
    errors: list[str] = []


class PowerTotalsSchema(BaseModel):
    generation_mw: float
    load_mw: float
    losses_mw: float
    generation_mvar: float
    load_mvar: float
    losses_mvar: float


class BusResultSchema(BaseModel):
    id: str
    bus_type: str
    voltage_pu: float
    angle_rad: float
    p_injection_mw: float
    q_injection_mvar: float


class BranchResultSchema(BaseModel):
    model_config = {"populate_by_name": True}

    id: str
    from_bus: str = Field(alias="from")
    to_bus: str = Field(alias="to")
    current_pu: float
    current_ka: float
    rated_current_ka: float
    p_from_mw: float
    q_from_mvar: float
    p_to_mw: float
    q_to_mvar: float
    losses_mw: float
    losses_mvar: float
    loading_pct: float
    loading_level: str


class LoadFlowResponse(BaseModel):
    converged: bool
    iterations: int
    max_mismatch: float
    termination: str  # converged | max_iterations | singular_jacobian
    stability: str    # stable | marginal | unstable
    totals: PowerTotalsSchema
    buses: list[BusResultSchema]
    branches: list[BranchResultSchema]
    mismatch_history: list[float]
