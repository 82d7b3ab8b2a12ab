"""Shared dependencies and helper functions for API routers.

Usage in routers:
    from api.dependencies import get_current_user, get_settings, bad_request
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Iterable

from fastapi import HTTPException

from team_calendar.api.auth import get_current_user  # noqa: F401 - re-export
from team_calendar.calendar import Event
from team_calendar.config import Settings, load_settings


# =============================================================================
# Configuration Constants
# =============================================================================

ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
    os.getenv("TCAL_ALLOWED_FRONTEND", "").strip(),
]


# =============================================================================
# Cached Functions
# =============================================================================

@lru_cache
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return load_settings()


# =============================================================================
# Error Helpers
# =============================================================================

def bad_request(exc: Exception) -> HTTPException:
    """Map an engine validation error to a 400 response."""
    return HTTPException(status_code=400, detail=str(exc))


def not_found(event_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Event {event_id} not found")


# =============================================================================
# Serialization Helpers
# =============================================================================

def serialize_events(events: Iterable[Event]) -> dict:
    """Serialize events to the standard list response."""
    payload = [e.to_api_dict() for e in events]
    return {"events": payload, "count": len(payload)}


def get_environment_info() -> tuple[str, bool]:
    """Get environment identifier and dev-bypass flag.

    Returns:
        Tuple of (environment_name, is_dev_bypass)
    """
    env = get_settings().environment
    is_dev = os.getenv("TCAL_DEV_AUTH_BYPASS") == "1"
    return env, is_dev
