from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from loadflow_api.api.v1 import contingency, load_flow, short_circuit, studies
from loadflow_api.config import settings
from loadflow_api.core.logging import RequestLoggingMiddleware, setup_logging


def create_app() -> FastAPI:
    setup_logging(json_format=settings.json_logs)

    application = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(RequestLoggingMiddleware)

    application.include_router(load_flow.router, prefix="/api/v1/load-flow", tags=["load-flow"])
    application.include_router(contingency.router, prefix="/api/v1", tags=["contingency"])
    application.include_router(
        contingency.grid_codes_router, prefix="/api/v1", tags=["grid-codes"]
    )
    application.include_router(
        short_circuit.router, prefix="/api/v1", tags=["short-circuit"]
    )
    application.include_router(studies.router, prefix="/api/v1", tags=["studies"])

    @application.get("/health")
    async def health_check() -> dict:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": application.version,
        }

    return application


app = create_app()
