import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.application.use_cases.notification_queue import RetryPolicy
from app.config import get_settings
from app.infrastructure.database import SessionLocal, engine, initialize_database
from app.infrastructure.email import is_email_configured
from app.infrastructure.notifications.scheduler import DispatchScheduler
from app.interfaces.api.dependencies import get_notification_sender
from app.interfaces.api.routes import register_routes

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Apply the configured level to the root logger."""

    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger().setLevel(level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema and run the dispatcher for the lifetime of the app."""

    settings = get_settings()
    initialize_database()

    if not is_email_configured():
        logger.warning(
            "SendGrid is not configured; queued notifications will be marked failed on send"
        )

    scheduler: DispatchScheduler | None = None
    if settings.dispatcher_enabled:
        scheduler = DispatchScheduler(
            SessionLocal,
            get_notification_sender(),
            interval_seconds=settings.dispatch_interval_seconds,
            batch_size=settings.dispatch_batch_size,
            policy=RetryPolicy.from_settings(settings),
        )
        scheduler.start()
    app.state.dispatch_scheduler = scheduler

    yield

    if scheduler is not None:
        await scheduler.stop()
        if settings.flush_on_shutdown:
            await scheduler.flush()
    engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Task notification queue", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()
