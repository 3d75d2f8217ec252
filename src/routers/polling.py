"""Read-only endpoints exposing cadence groups and cached account snapshots."""

from __future__ import annotations

import base64
from typing import Any

from fastapi import APIRouter, HTTPException

from src.dependencies import Scheduler
from src.models.base import ErrorDetail
from src.models.polling import FrequencyGroupRead, PollingStatusRead, WatchedAccountRead

router = APIRouter(prefix="/polling", tags=["polling"])


@router.get("/status", response_model=PollingStatusRead)
async def polling_status(scheduler: Scheduler) -> Any:
    return scheduler.status()


@router.get("/groups", response_model=list[FrequencyGroupRead])
async def list_groups(scheduler: Scheduler) -> Any:
    return scheduler.status()["groups"]


@router.get(
    "/accounts/{key}",
    response_model=WatchedAccountRead,
    responses={404: {"model": ErrorDetail}},
)
async def get_account(key: str, scheduler: Scheduler) -> Any:
    cadence = scheduler.cadence_of(key)
    if cadence is None:
        raise HTTPException(status_code=404, detail="Account not watched")

    snapshot = scheduler.get_snapshot(key)
    return {
        "key": key,
        "cadence_ms": cadence,
        "explicit_cadence": scheduler.explicit_cadence_of(key) is not None,
        "version": snapshot.version if snapshot else None,
        "data_base64": base64.b64encode(snapshot.data).decode() if snapshot else None,
    }
