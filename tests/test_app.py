"""Tests for the Flask status and health endpoints."""

import threading
import time
import unittest
from unittest.mock import MagicMock

from wsw_status.app import create_app
from wsw_status.fetchers.wsw import ElevatorStatus, Snapshot
from wsw_status.refresh import RefreshState, StatusRefresher
from wsw_status.store import StatusStore


def _snapshot(tag: str, last_updated: int) -> Snapshot:
    return Snapshot(
        subway_lines=(f"{tag}: Vohwinkel",),
        elevators=(ElevatorStatus(station=tag, event="Ausfall"),),
        last_updated=last_updated,
    )


class TestStatusEndpoint(unittest.TestCase):
    """Test GET /status."""

    def setUp(self):
        self.store = StatusStore()
        self.scrape = MagicMock(return_value=_snapshot("Störung", 1700000000))
        self.refresher = StatusRefresher(self.store, self.scrape)
        self.client = create_app(self.store, self.refresher).test_client()

    def test_initial_state(self):
        response = self.client.get("/status")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.get_json(),
            {"subway_lines": [], "elevators": [], "last_updated": None},
        )

    def test_request_arms_clock_without_scraping(self):
        self.assertIsNone(self.store.last_request())
        self.client.get("/status")
        self.assertIsNotNone(self.store.last_request())
        self.assertEqual(self.scrape.call_count, 0)

    def test_returns_published_snapshot(self):
        self.store.publish(_snapshot("Störung", 1700000000))
        payload = self.client.get("/status").get_json()
        self.assertEqual(payload["subway_lines"], ["Störung: Vohwinkel"])
        self.assertEqual(payload["elevators"][0]["station"], "Störung")
        self.assertEqual(payload["elevators"][0]["end_time"], "")
        self.assertEqual(payload["last_updated"], 1700000000)

    def test_tick_after_request_scrapes(self):
        self.client.get("/status")
        self.assertTrue(self.refresher.tick())
        payload = self.client.get("/status").get_json()
        self.assertEqual(payload["last_updated"], 1700000000)

    def test_concurrent_requests_during_refresh(self):
        self.store.publish(_snapshot("old", 1))
        app = create_app(self.store, self.refresher)
        payloads = []
        lock = threading.Lock()

        def poll():
            client = app.test_client()
            for _ in range(20):
                payload = client.get("/status").get_json()
                with lock:
                    payloads.append(payload)

        pollers = [threading.Thread(target=poll) for _ in range(4)]
        for thread in pollers:
            thread.start()
        for i in range(50):
            self.store.publish(_snapshot("new" if i % 2 else "old", i + 2))
        for thread in pollers:
            thread.join()

        self.assertEqual(len(payloads), 80)
        for payload in payloads:
            tag = payload["subway_lines"][0].split(":")[0]
            self.assertEqual(payload["elevators"][0]["station"], tag)


class TestHealthEndpoint(unittest.TestCase):
    """Test GET /health."""

    def setUp(self):
        self.store = StatusStore()
        self.refresher = StatusRefresher(self.store, MagicMock())
        self.client = create_app(self.store, self.refresher).test_client()

    def test_idle_before_any_request(self):
        payload = self.client.get("/health").get_json()
        self.assertEqual(payload["status"], "idle")
        self.assertEqual(payload["refresh_state"], "idle")
        self.assertEqual(payload["last_update"], "never")
        self.assertEqual(payload["fetch_count"], 0)

    def test_healthy_after_fresh_scrape(self):
        scrape = MagicMock(return_value=_snapshot("Störung", int(time.time())))
        refresher = StatusRefresher(self.store, scrape)
        client = create_app(self.store, refresher).test_client()

        client.get("/status")
        self.assertTrue(refresher.tick())
        self.assertIs(refresher.state, RefreshState.ACTIVE)
        payload = client.get("/health").get_json()
        self.assertEqual(payload["status"], "healthy")
        self.assertEqual(payload["refresh_state"], "active")

    def test_fetched_snapshot_not_reported_idle(self):
        self.store.publish(_snapshot("Störung", int(time.time())))
        self.assertIs(self.refresher.state, RefreshState.IDLE)
        payload = self.client.get("/health").get_json()
        self.assertEqual(payload["status"], "healthy")
        self.assertEqual(payload["fetch_count"], 1)

    def test_stale_snapshot(self):
        self.store.publish(_snapshot("Störung", int(time.time()) - 45 * 60))
        payload = self.client.get("/health").get_json()
        self.assertEqual(payload["status"], "stale")

    def test_error_when_snapshot_too_old(self):
        self.store.publish(_snapshot("Störung", int(time.time()) - 2 * 60 * 60))
        payload = self.client.get("/health").get_json()
        self.assertEqual(payload["status"], "error")

    def test_error_after_failed_scrape(self):
        self.store.record_error("timeout")
        payload = self.client.get("/api/health").get_json()
        self.assertEqual(payload["status"], "error")
        self.assertEqual(payload["last_error"], "timeout")
        self.assertEqual(payload["error_count"], 1)


if __name__ == "__main__":
    unittest.main()
