from __future__ import annotations

import time
from typing import Optional, TypedDict

from wsw_status.refresh import RefreshState, StatusRefresher
from wsw_status.store import StatusStore


START_TIME = time.time()


class HealthStatus(TypedDict):
    status: str
    uptime_seconds: int
    refresh_state: str
    last_update: str
    last_request: str
    last_error: Optional[str]
    fetch_count: int
    error_count: int


def _format_age(timestamp: Optional[float], now: int) -> str:
    if not timestamp:
        return "never"
    delta = max(0, now - int(timestamp))
    return f"{delta}s ago"


def _scrape_status(
    last_updated: Optional[int],
    last_error_at: Optional[int],
    refresh_state: RefreshState,
    now: int,
    staleness_warning_sec: int,
    staleness_critical_sec: int,
) -> str:
    if last_error_at and (last_updated is None or last_error_at >= last_updated):
        return "error"
    if last_updated is None:
        return "idle" if refresh_state is RefreshState.IDLE else "error"
    age = now - last_updated
    if age >= staleness_critical_sec:
        return "error"
    if age >= staleness_warning_sec:
        return "stale"
    return "healthy"


def get_health_status(
    store: StatusStore,
    refresher: StatusRefresher,
    staleness_warning_sec: int,
    staleness_critical_sec: int,
) -> HealthStatus:
    now = int(time.time())
    metadata = store.get_metadata()
    refresh_state = refresher.state
    status = _scrape_status(
        last_updated=metadata["last_updated"],
        last_error_at=metadata["last_error_at"],
        refresh_state=refresh_state,
        now=now,
        staleness_warning_sec=staleness_warning_sec,
        staleness_critical_sec=staleness_critical_sec,
    )
    return {
        "status": status,
        "uptime_seconds": int(now - START_TIME),
        "refresh_state": refresh_state.value,
        "last_update": _format_age(metadata["last_updated"], now),
        "last_request": _format_age(metadata["last_request"], now),
        "last_error": metadata["last_error"],
        "fetch_count": metadata["fetch_count"],
        "error_count": metadata["error_count"],
    }
