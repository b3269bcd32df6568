from pydantic import BaseModel, Field

from loadflow.short_circuit import FaultType
from loadflow_api.schemas.network import NetworkSchema


class FaultOptions(BaseModel):
    base_mva: float | None = Field(default=None, gt=0)
    base_kv: float | None = Field(default=None, gt=0)
    prefault_voltage_pu: float | None = Field(default=None, gt=0, le=1.2)
    grid_impedance_pu: tuple[float, float] | None = Field(
        default=None, description="External grid [R, X] at the slack bus"
    )
    generator_reactance_pu: float | None = Field(default=None, gt=0)
    zero_sequence_ratio: float | None = Field(default=None, gt=0)
    fault_impedance_pu: tuple[float, float] | None = Field(
        default=None, description="Fault path [R, X]; omit for a bolted fault"
    )


class ShortCircuitRequest(BaseModel):
    network: NetworkSchema
    fault_type: FaultType = FaultType.THREE_PHASE
    use_load_flow: bool = Field(
        default=False,
        description="Take pre-fault voltages from a load flow instead of a flat profile",
    )
    options: FaultOptions = Field(default_factory=FaultOptions)


class FaultRequest(ShortCircuitRequest):
    bus_id: str = Field(min_length=1)


class BusFaultLevelItem(BaseModel):
    bus_id: str
    i_sc_ka: float
    s_sc_mva: float
    z_th_pu: list[float]


class ShortCircuitResponse(BaseModel):
    fault_type: str
    buses: list[BusFaultLevelItem]


class FaultVoltageItem(BaseModel):
    bus_id: str
    voltage_pu: float


class FaultResponse(BaseModel):
    bus_id: str
    fault_type: str
    fault_current_pu: float
    fault_current_ka: float
    z_th_pu: list[float]
    voltage_profile: list[FaultVoltageItem]
