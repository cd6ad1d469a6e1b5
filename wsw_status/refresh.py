from __future__ import annotations

import enum
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from apscheduler.schedulers.base import BaseScheduler

from wsw_status.config import DEFAULT_POLL_INTERVAL_MINUTES, DEFAULT_REQUEST_WINDOW_MINUTES
from wsw_status.fetchers.wsw import Snapshot
from wsw_status.store import StatusStore


REFRESH_JOB_ID = "wsw-status-refresh"

logger = logging.getLogger(__name__)


class RefreshState(enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"


class StatusRefresher:
    """Re-scrapes the status page on a timer, but only while clients are polling.

    Each tick checks the store's request clock. When the last ``/status``
    request is older than the request window (or there was none), the tick
    does nothing. The next tick is scheduled once the current one has
    finished, so cycles never overlap.
    """

    def __init__(
        self,
        store: StatusStore,
        scrape: Callable[[], Snapshot],
        poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_MINUTES * 60,
        request_window_seconds: int = DEFAULT_REQUEST_WINDOW_MINUTES * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._scrape = scrape
        self._poll_interval_seconds = poll_interval_seconds
        self._request_window_seconds = request_window_seconds
        self._clock = clock
        self._state = RefreshState.IDLE
        self._scheduler: Optional[BaseScheduler] = None

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def poll_interval_seconds(self) -> int:
        return self._poll_interval_seconds

    def should_refresh(self) -> bool:
        last_request = self._store.last_request()
        if last_request is None:
            return False
        return self._clock() - last_request < self._request_window_seconds

    def _update_state(self, active: bool) -> None:
        state = RefreshState.ACTIVE if active else RefreshState.IDLE
        if state is self._state:
            return
        if state is RefreshState.ACTIVE:
            logger.info("Status requested recently; resuming refresh")
        else:
            logger.info(
                "No status request in the last %ss; pausing refresh",
                self._request_window_seconds,
            )
        self._state = state

    def refresh(self) -> bool:
        try:
            snapshot = self._scrape()
        except Exception as exc:
            self._store.record_error(str(exc))
            logger.error("Status scrape failed: %s", exc)
            return False

        published = self._store.publish(snapshot)
        logger.info(
            "Status updated: %s line entries, %s elevator entries, last_updated=%s",
            len(published.subway_lines),
            len(published.elevators),
            published.last_updated,
        )
        return True

    def tick(self) -> bool:
        active = self.should_refresh()
        self._update_state(active)
        if not active:
            return False
        return self.refresh()

    def start(self, scheduler: BaseScheduler) -> None:
        self._scheduler = scheduler
        self._schedule(datetime.now(timezone.utc))
        logger.info(
            "Refresh scheduled every %ss while requests arrive within %ss",
            self._poll_interval_seconds,
            self._request_window_seconds,
        )

    def _schedule(self, run_date: datetime) -> None:
        if self._scheduler is None:
            raise RuntimeError("Refresher has not been started.")
        self._scheduler.add_job(
            self._run_scheduled_tick,
            "date",
            run_date=run_date,
            id=REFRESH_JOB_ID,
            replace_existing=True,
            misfire_grace_time=None,
        )

    def _run_scheduled_tick(self) -> None:
        try:
            self.tick()
        finally:
            next_run = datetime.now(timezone.utc) + timedelta(seconds=self._poll_interval_seconds)
            self._schedule(next_run)
