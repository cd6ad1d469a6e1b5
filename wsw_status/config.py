from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from wsw_status.fetchers.wsw import REQUEST_TIMEOUT_SECONDS, STATUS_URL


ROOT_DIR = Path(__file__).resolve().parents[1]
CONFIG_PATH = ROOT_DIR / "config.yaml"

DEFAULT_POLL_INTERVAL_MINUTES = 15
DEFAULT_REQUEST_WINDOW_MINUTES = 20
DEFAULT_STALENESS_WARNING_MINUTES = 30
DEFAULT_STALENESS_CRITICAL_MINUTES = 60
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8070

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    url: str = STATUS_URL
    timeout_seconds: int = REQUEST_TIMEOUT_SECONDS
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_MINUTES * 60
    request_window_seconds: int = DEFAULT_REQUEST_WINDOW_MINUTES * 60
    staleness_warning_sec: int = DEFAULT_STALENESS_WARNING_MINUTES * 60
    staleness_critical_sec: int = DEFAULT_STALENESS_CRITICAL_MINUTES * 60
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


def resolve_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    environ = os.environ if environ is None else environ
    override = environ.get("STATUS_CONFIG")
    return Path(override) if override else CONFIG_PATH


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    config_path = config_path or resolve_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    logger.info("Loading config from %s", config_path)
    with config_path.open() as handle:
        data = yaml.safe_load(handle)
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping.")
    return data


def _safe_int(value: Any, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config.get(name, {})
    return section if isinstance(section, dict) else {}


def build_settings(
    config: Dict[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    environ = os.environ if environ is None else environ
    upstream = _section(config, "upstream")
    refresh = _section(config, "refresh")
    health = _section(config, "health")
    server = _section(config, "server")

    url = upstream.get("url")
    url_value = url.strip() if isinstance(url, str) and url.strip() else STATUS_URL
    timeout = max(1, _safe_int(upstream.get("timeout_seconds"), REQUEST_TIMEOUT_SECONDS))

    poll_minutes = max(
        1, _safe_int(refresh.get("poll_interval_minutes"), DEFAULT_POLL_INTERVAL_MINUTES)
    )
    window_minutes = max(
        1, _safe_int(refresh.get("request_window_minutes"), DEFAULT_REQUEST_WINDOW_MINUTES)
    )

    warning = max(
        0,
        _safe_int(health.get("staleness_warning_minutes"), DEFAULT_STALENESS_WARNING_MINUTES),
    )
    critical = max(
        0,
        _safe_int(health.get("staleness_critical_minutes"), DEFAULT_STALENESS_CRITICAL_MINUTES),
    )
    if critical < warning:
        critical = warning

    host = environ.get("HOST") or server.get("host") or DEFAULT_HOST
    port = _safe_int(environ.get("PORT", server.get("port")), DEFAULT_PORT)

    return Settings(
        url=url_value,
        timeout_seconds=timeout,
        poll_interval_seconds=poll_minutes * 60,
        request_window_seconds=window_minutes * 60,
        staleness_warning_sec=warning * 60,
        staleness_critical_sec=critical * 60,
        host=str(host),
        port=port,
    )
