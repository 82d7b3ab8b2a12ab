"""FastAPI service for Team Calendar."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import ALLOWED_ORIGINS, get_environment_info, get_settings
from api.routers import calendar_router


app = FastAPI(
    title="Team Calendar API",
    version="0.1.0",
    description="REST interface for recurring events, conflict checks and event queries.",
)

origins = [origin for origin in ALLOWED_ORIGINS if origin]

if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(calendar_router, prefix="/calendar", tags=["calendar"])


@app.get("/health")
def health_check() -> dict:
    """Health check endpoint with engine configuration."""
    settings = get_settings()
    environment, dev_bypass = get_environment_info()
    return {
        "status": "ok",
        "environment": environment,
        "devAuthBypass": dev_bypass,
        "engine": {
            "maxOccurrences": settings.max_occurrences,
            "defaultHorizonDays": settings.default_horizon_days,
            "weekStartDay": settings.week_start_day,
        },
    }
