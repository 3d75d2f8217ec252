"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from src.accounts.polling.scheduler import CadenceScheduler
from src.config import Settings, get_settings


async def get_scheduler(request: Request) -> CadenceScheduler:
    """Return the scheduler created by the application lifespan hook."""
    scheduler: CadenceScheduler | None = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialized")
    return scheduler


# Annotated shortcuts for route signatures
Scheduler = Annotated[CadenceScheduler, Depends(get_scheduler)]
AppSettings = Annotated[Settings, Depends(get_settings)]
