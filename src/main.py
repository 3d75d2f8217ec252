"""ledgerwatch service — FastAPI application entry point.

Runs one CadenceScheduler for the process and exposes read-only status
endpoints.  Library users embed CadenceScheduler directly instead.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.accounts.polling.scheduler import CadenceScheduler
from src.accounts.readers import get_reader
from src.config import get_settings
from src.routers import health, polling

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("ledgerwatch")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting ledgerwatch v%s [%s] with %s reader",
        settings.app_version,
        settings.environment,
        settings.reader,
    )
    reader = get_reader(settings.reader).from_settings(settings)
    scheduler = CadenceScheduler.from_settings(reader, settings)
    scheduler.start()
    app.state.scheduler = scheduler
    yield
    scheduler.stop()
    await scheduler.drain()
    await reader.aclose()
    logger.info("ledgerwatch shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="ledgerwatch",
        description="Cadence-aware polling of remote ledger accounts.",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # ---------- Health check (outside v1 prefix — always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    app.include_router(polling.router, prefix="/api/v1")

    return app


app = create_app()
