from typing import Any

from pydantic import BaseModel, Field, model_validator

_KIND_FIELDS = {
    "slack": {"voltage_setpoint", "angle"},
    "pv": {"voltage_setpoint", "p"},
    "pq": {"p", "q"},
}


class BusSchema(BaseModel):
    model_config = {"populate_by_name": True}

    id: str = Field(min_length=1, max_length=255)
    kind: str = Field(pattern="^(slack|pv|pq)$")
    p: float | None = None
    q: float | None = None
    voltage_setpoint: float | None = Field(default=None, gt=0, alias="voltageSetpoint")
    angle: float | None = None
    name: str | None = Field(default=None, max_length=255)
    base_kv: float | None = Field(default=None, gt=0, alias="baseKV")

    @model_validator(mode="after")
    def _fields_match_kind(self) -> "BusSchema":
        allowed = _KIND_FIELDS[self.kind]
        stray = [
            f for f in ("p", "q", "voltage_setpoint", "angle")
            if f not in allowed and getattr(self, f) is not None
        ]
        if stray:
            raise ValueError(f"fields {stray} do not apply to {self.kind} buses")
        return self


class BranchSchema(BaseModel):
    model_config = {"populate_by_name": True}

    id: str = Field(min_length=1, max_length=255)
    from_bus: str = Field(alias="from")
    to_bus: str = Field(alias="to")
    r: float = Field(ge=0)
    x: float = Field(ge=0)
    b: float = 0.0
    rating_mva: float = Field(default=0.0, ge=0, alias="ratingMVA")


class NetworkSchema(BaseModel):
    buses: list[BusSchema] = Field(min_length=1)
    branches: list[BranchSchema] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """The plain structured form accepted by loadflow.network_from_dict."""
        return self.model_dump(by_alias=True, exclude_none=True)


class SolveOptions(BaseModel):
    tolerance_pu: float | None = Field(default=None, gt=0)
    max_iterations: int | None = Field(default=None, ge=0, le=500)
    base_mva: float | None = Field(default=None, gt=0)
    base_kv: float | None = Field(default=None, gt=0)
    voltage_clamp_pu: tuple[float, float] | None = None
    grid_code: str | None = Field(
        default=None,
        description="Grid code profile whose voltage bands drive the stability label",
    )
