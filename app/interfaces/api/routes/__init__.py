from fastapi import FastAPI

from .notification_events import router as notification_events_router
from .notification_queue import router as notification_queue_router


def register_routes(app: FastAPI) -> None:
    """Register every API router on the FastAPI application."""

    app.include_router(notification_events_router)
    app.include_router(notification_queue_router)
