"""
API Module
FastAPI routers for the MediTrack application
"""

from api.adherence import router as adherence_router
from api.reminders import router as reminders_router
from api.alerts import router as alerts_router
from api.doses import router as doses_router

from api.deps import (
    get_db,
    as_of_param,
    services,
)


__all__ = [
    # Routers
    "adherence_router",
    "reminders_router",
    "alerts_router",
    "doses_router",
    # Dependencies
    "get_db",
    "as_of_param",
    "services",
]


def include_routers(app, prefix: str = "/api/v1"):
    """
    Include all API routers in the FastAPI app

    Usage:
        from api import include_routers
        include_routers(app)
    """
    app.include_router(adherence_router, prefix=prefix)
    app.include_router(reminders_router, prefix=prefix)
    app.include_router(alerts_router, prefix=prefix)
    app.include_router(doses_router, prefix=prefix)
