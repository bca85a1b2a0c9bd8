# backend/creatorlink/main.py
"""
CreatorLink messaging API.

create_app() wires the realtime components (registry, router, gateway)
and the session factory onto app.state, so each application instance
owns its own in-process state. The module-level `app` is what uvicorn
serves: `uvicorn creatorlink.main:app`.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, FastAPI
from sqlalchemy.engine import Engine

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .core.auth import CredentialVerifier
from .core.config import Settings, is_running_tests, settings as default_settings
from .database import Base, build_session_factory, engine as default_engine
from .errors import register_error_handlers
from .routes.v1 import conversations as conversations_v1
from .routes.v1 import metrics as metrics_v1
from .routes.v1 import realtime as realtime_v1
from .services.messaging.gateway import RealtimeGateway
from .services.messaging.registry import ConnectionRegistry
from .services.messaging.router import RoomRouter

API_TITLE = "CreatorLink Messaging API"
API_VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(
    credential_verifier: Optional[CredentialVerifier] = None,
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        credential_verifier: Turns bearer tokens into identity ids; without
            one every request and socket is rejected as unauthenticated
        settings: Overrides the environment-derived settings
        engine: Overrides the engine built from settings.database_url
    """
    runtime_settings = settings or default_settings
    bind = engine or default_engine
    session_factory = build_session_factory(bind)

    registry = ConnectionRegistry()
    room_router = RoomRouter(registry)
    gateway = RealtimeGateway(
        registry,
        room_router,
        session_factory,
        runtime_settings,
        credential_verifier=credential_verifier,
    )

    @asynccontextmanager
    async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Handle application startup/shutdown."""
        configure_logging(runtime_settings.log_level)
        logger.info(f"{API_TITLE} starting up (environment: {runtime_settings.environment})")
        if is_running_tests():
            logger.info("Running under pytest (test mode active)")
        if runtime_settings.create_tables_on_startup:
            Base.metadata.create_all(bind=bind)
        if credential_verifier is None:
            logger.warning("No credential verifier configured; all requests will be rejected")

        yield

        logger.info(f"{API_TITLE} shutting down...")
        room_router.clear()
        registry.clear()

    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    app.state.settings = runtime_settings
    app.state.session_factory = session_factory
    app.state.credential_verifier = credential_verifier
    app.state.connection_registry = registry
    app.state.room_router = room_router
    app.state.realtime_gateway = gateway

    register_error_handlers(app)

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(conversations_v1.router, prefix="/conversations")
    api_v1.include_router(realtime_v1.router, prefix="/realtime")
    app.include_router(api_v1)
    app.include_router(metrics_v1.router)

    return app


app = create_app()
