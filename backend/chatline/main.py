# chatline/main.py

import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from chatline.api import messages, realtime, users
from chatline.api.errors import register_exception_handlers
from chatline.config import Settings, get_settings
from chatline.core.media import MediaIntake
from chatline.core.message import MessageIngest
from chatline.core.notifier import FanoutNotifier
from chatline.core.rate_limit import configure_limiter, limiter
from chatline.core.registry import ConnectionRegistry
from chatline.infra import database
from chatline.infra.message_store import SqlMessageStore
from chatline.utils.logger import logger, setup_logger


def ensure_database_or_exit() -> None:
    """Fail fast: there is no degraded mode without the database."""
    if not database.check_connection():
        logger.critical("Database unreachable at startup, exiting")
        sys.exit(1)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    database.configure_database(settings.get_database_url())
    ensure_database_or_exit()
    if settings.auto_create_tables:
        database.init_db()
    logger.info("Chat backend started", extra={"media_root": app.state.media.root})

    yield

    await app.state.notifier.aclose()
    logger.info("Chat backend stopped")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logger(level=settings.log_level)

    app = FastAPI(
        title="Chatline Backend",
        version="1.0.0",
        description="Real-time chat backend with durable message storage",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Components; the registry is owned here and handed to whoever needs it
    registry = ConnectionRegistry()
    notifier = FanoutNotifier(registry, push_timeout=settings.push_timeout_seconds)
    media = MediaIntake(
        settings.media_root,
        allowed_types=settings.get_allowed_media_types(),
        max_bytes=settings.max_media_bytes,
        url_prefix=settings.media_url_prefix,
    )
    store = SqlMessageStore()
    ingest = MessageIngest(
        store,
        media,
        notifier,
        store_timeout=settings.store_timeout_seconds,
        media_timeout=settings.media_timeout_seconds,
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.notifier = notifier
    app.state.media = media
    app.state.store = store
    app.state.ingest = ingest
    configure_limiter(settings)
    app.state.limiter = limiter

    register_exception_handlers(app)

    # Register routers
    app.include_router(users.router, tags=["Users"])
    app.include_router(messages.router, tags=["Messages"])
    app.include_router(realtime.router, tags=["Realtime"])

    # Stored attachments
    app.mount(settings.media_url_prefix, StaticFiles(directory=media.root), name="uploads")

    @app.get("/health")
    def health_check():
        return {"status": "ok", "online": len(registry)}

    return app


def run() -> None:
    """Console entry point: check the database, then serve."""
    import uvicorn

    settings = get_settings()
    database.configure_database(settings.get_database_url())
    ensure_database_or_exit()
    uvicorn.run("chatline.main:create_app", factory=True, host=settings.host, port=settings.port)
