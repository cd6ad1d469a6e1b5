from __future__ import annotations

import threading
import time
from typing import Callable, Optional, TypedDict

from wsw_status.fetchers.wsw import Snapshot


class ScrapeMetadata(TypedDict):
    last_updated: Optional[int]
    last_error: Optional[str]
    last_error_at: Optional[int]
    last_request: Optional[float]
    fetch_count: int
    error_count: int


class StatusStore:
    """Holds the published snapshot and the time of the last status request.

    Snapshots are immutable and swapped as a whole, so readers always see one
    complete snapshot.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._request_lock = threading.Lock()
        self._snapshot = Snapshot()
        self._last_request: Optional[float] = None
        self._last_error: Optional[str] = None
        self._last_error_at: Optional[int] = None
        self._fetch_count = 0
        self._error_count = 0

    def get_snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot

    def publish(self, snapshot: Snapshot) -> Snapshot:
        with self._lock:
            previous = self._snapshot.last_updated
            if (
                previous is not None
                and snapshot.last_updated is not None
                and snapshot.last_updated < previous
            ):
                snapshot = Snapshot(
                    subway_lines=snapshot.subway_lines,
                    elevators=snapshot.elevators,
                    last_updated=previous,
                )
            self._snapshot = snapshot
            self._last_error = None
            self._last_error_at = None
            self._fetch_count += 1
            return snapshot

    def record_error(self, error: str) -> None:
        now = int(self._clock())
        with self._lock:
            self._last_error = error
            self._last_error_at = now
            self._error_count += 1

    def mark_requested(self) -> float:
        now = self._clock()
        with self._request_lock:
            self._last_request = now
        return now

    def last_request(self) -> Optional[float]:
        with self._request_lock:
            return self._last_request

    def get_metadata(self) -> ScrapeMetadata:
        with self._lock:
            metadata: ScrapeMetadata = {
                "last_updated": self._snapshot.last_updated,
                "last_error": self._last_error,
                "last_error_at": self._last_error_at,
                "last_request": None,
                "fetch_count": self._fetch_count,
                "error_count": self._error_count,
            }
        metadata["last_request"] = self.last_request()
        return metadata
