from pydantic import BaseModel, Field

from loadflow_api.schemas.network import NetworkSchema, SolveOptions


class ContingencyRequest(BaseModel):
    network: NetworkSchema
    options: SolveOptions = Field(default_factory=SolveOptions)
    grid_code: str = Field(
        default="iec_default",
        description="Built-in profile key, or 'custom' to use custom_profile"
    )
    custom_profile: dict | None = Field(
        default=None,
        description="name, standard, voltage_limits, thermal_limit_pct, metadata"
    )


class VoltageViolationItem(BaseModel):
    bus_id: str
    voltage_pu: float
    limit_type: str
    limit_value: float


class ThermalViolationItem(BaseModel):
    branch_id: str
    loading_pct: float
    rating_mva: float
    limit_pct: float


class ContingencyItem(BaseModel):
    branch_id: str
    passed: bool
    converged: bool
    iterations: int
    stability: str
    causes_islanding: bool
    min_voltage_pu: float
    min_voltage_bus: str
    max_voltage_pu: float
    max_loading_pct: float
    max_loading_branch: str
    voltage_violations: list[VoltageViolationItem]
    thermal_violations: list[ThermalViolationItem]


class ContingencySummary(BaseModel):
    total_contingencies: int
    passed: int
    failed: int
    islanding_cases: int
    diverged_cases: int
    worst_voltage_pu: float
    worst_voltage_bus: str
    worst_loading_pct: float
    worst_loading_branch: str
    n1_secure: bool


class ContingencyResponse(BaseModel):
    grid_code: str
    summary: ContingencySummary
    contingencies: list[ContingencyItem]


class GridCodeProfileSummary(BaseModel):
    key: str
    name: str
    standard: str
    voltage_normal: list[float]
    thermal_limit_pct: float


class GridCodeListResponse(BaseModel):
    profiles: list[GridCodeProfileSummary]


class GridCodeDetailResponse(BaseModel):
    name: str
    standard: str
    voltage_limits: dict
    thermal_limit_pct: float
    metadata: dict
