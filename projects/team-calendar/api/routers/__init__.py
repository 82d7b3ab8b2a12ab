"""API Routers Package.

Each router handles a specific domain:
- calendar.py: Expansion, conflicts, queries, stored events, suggestions, stats

Usage in main.py:
    from api.routers import calendar_router

    app.include_router(calendar_router, prefix="/calendar", tags=["calendar"])
"""

from .calendar import router as calendar_router

__all__ = [
    "calendar_router",
]
