import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ledger_sync.config import settings
from ledger_sync.logging_config import configure_logging
from ledger_sync.api.v1.routers import all_routers
from ledger_sync.db.session import AsyncSessionLocal, engine
from ledger_sync.db.init_db import create_tables, init_db

logger = logging.getLogger(__name__)


# Lifespan handler
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events for FastAPI app."""
    async with AsyncSessionLocal() as session:
        await init_db(session)
    if settings.DATABASE_URL.startswith("sqlite"):
        await create_tables(engine)
    logger.info("App startup complete", extra={"env": settings.ENV})
    yield
    await engine.dispose()
    logger.info("App shutting down")


def create_app() -> FastAPI:
    configure_logging(logging.DEBUG if settings.DEBUG else logging.INFO)

    app = FastAPI(
        title=settings.APP_NAME,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router in all_routers:
        app.include_router(router)

    return app


app = create_app()
