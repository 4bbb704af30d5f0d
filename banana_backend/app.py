from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from tortoise.contrib.fastapi import RegisterTortoise

from .config import Settings, get_settings
from .logging_config import configure_logging, get_logger
from .routers import auth as auth_router
from .routers import users as users_router
from .routers import websockets as ws_router
from .state import PresenceState
from .user_store import UserStore

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None, store: Optional[UserStore] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # -----------------------------
        # Database (Tortoise ORM)
        # -----------------------------
        async with RegisterTortoise(
            app,
            db_url=settings.database_url,
            modules={"models": ["banana_backend.models"]},
            generate_schemas=settings.generate_schemas,
            add_exception_handlers=True,
        ):
            presence = PresenceState(settings, store=store)
            app.state.presence = presence
            logger.info("presence layer started", database_url=settings.database_url)
            try:
                yield
            finally:
                presence.shutdown()
                logger.info("presence layer stopped")

    # -----------------------------
    # FastAPI app instance
    # -----------------------------

    app = FastAPI(title="Banana Clicker Backend", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(auth_router.router)
    app.include_router(users_router.router)
    app.include_router(ws_router.router)

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    async def alive() -> str:
        return "Banana Clicker Backend is Alive!"

    return app


app = create_app()

__all__ = ["app", "create_app"]
