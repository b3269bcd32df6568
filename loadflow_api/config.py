from pydantic_settings import BaseSettings

from loadflow import SolveConfig


class Settings(BaseSettings):
    model_config = {"env_prefix": "LOADFLOW_", "case_sensitive": False}

    # App
    environment: str = "development"
    debug: bool = True
    app_name: str = "LoadFlow"
    json_logs: bool = False
    cors_origins: str = "http://localhost:3000"

    # Redis (Celery broker and result backend)
    redis_url: str = "redis://localhost:6379/0"
    result_ttl_s: int = 86400

    # Solver defaults for requests that do not override them
    tolerance_pu: float = 1e-3
    max_iterations: int = 50
    base_mva: float = 100.0
    base_kv: float = 138.0
    grid_code: str = "iec_default"

    def solve_config(self) -> SolveConfig:
        return SolveConfig(
            tolerance_pu=self.tolerance_pu,
            max_iterations=self.max_iterations,
            base_mva=self.base_mva,
            base_kv=self.base_kv,
        )


settings = Settings()
