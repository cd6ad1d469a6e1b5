from __future__ import annotations

import logging
from functools import partial
from typing import Any, Optional

import requests
from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask, jsonify
from flask_cors import CORS

from wsw_status.config import Settings, build_settings, load_config
from wsw_status.fetchers.wsw import scrape_status
from wsw_status.health import get_health_status
from wsw_status.refresh import StatusRefresher
from wsw_status.store import StatusStore


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    store: StatusStore,
    refresher: StatusRefresher,
    settings: Optional[Settings] = None,
) -> Flask:
    settings = settings or Settings()
    app = Flask(__name__)
    app.json.ensure_ascii = False
    CORS(app)

    @app.route("/status")
    def api_status() -> Any:
        # Arms the refresh window; never scrapes by itself.
        store.mark_requested()
        return jsonify(store.get_snapshot().to_dict())

    @app.route("/health")
    def health_alias() -> Any:
        return api_health()

    @app.route("/api/health")
    def api_health() -> Any:
        status = get_health_status(
            store,
            refresher,
            settings.staleness_warning_sec,
            settings.staleness_critical_sec,
        )
        return jsonify(status)

    return app


def build_refresher(settings: Settings, store: StatusStore) -> StatusRefresher:
    session = requests.Session()
    scrape = partial(
        scrape_status,
        url=settings.url,
        timeout=settings.timeout_seconds,
        session=session,
    )
    return StatusRefresher(
        store,
        scrape,
        poll_interval_seconds=settings.poll_interval_seconds,
        request_window_seconds=settings.request_window_seconds,
    )


def main() -> None:
    try:
        config = load_config()
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        return

    settings = build_settings(config)
    store = StatusStore()
    refresher = build_refresher(settings, store)

    logger.info("Starting background scheduler...")
    scheduler = BackgroundScheduler()
    refresher.start(scheduler)
    scheduler.start()

    app = create_app(store, refresher, settings)
    logger.info("Flask server starting on http://%s:%s", settings.host, settings.port)
    app.run(host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
