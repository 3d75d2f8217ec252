"""Health check endpoint — public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.dependencies import AppSettings, Scheduler
from src.models.polling import HealthRead

router = APIRouter(tags=["system"])
logger = logging.getLogger("ledgerwatch.health")


@router.get("/health", response_model=HealthRead)
async def health_check(settings: AppSettings, scheduler: Scheduler) -> dict:
    """Liveness probe. Returns 200 if the process is up.

    Reports "degraded" while the scheduler is stopped.
    """
    running = scheduler.running
    if not running:
        logger.warning("Health check: scheduler is stopped")

    return {
        "status": "healthy" if running else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "scheduler_running": running,
        "watched_keys": scheduler.status()["watched_keys"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
