from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import requests
import soupsieve as sv
from bs4 import BeautifulSoup
from bs4.element import Tag


STATUS_URL = "https://www.wsw-online.de/mobilitaet/fahrplan/fahrtauskunft/verkehrsinformationen/"
REQUEST_TIMEOUT_SECONDS = 10

NO_LINE_DISRUPTIONS = "Keine aktuellen Störungen"
ALL_ELEVATORS_IN_SERVICE = "Alle Aufzüge sind in Betrieb"

PERIOD_SEPARATOR = "bis"
TRANSPORTATION_ATTRIBUTE = "data-transportation"

logger = logging.getLogger(__name__)


class ScrapeError(RuntimeError):
    pass


class NetworkError(ScrapeError):
    pass


class ExtractionError(ScrapeError):
    pass


def _compile(selector: str) -> sv.SoupSieve:
    try:
        return sv.compile(selector)
    except sv.SelectorSyntaxError as exc:
        raise ExtractionError(f"Invalid selector {selector!r}: {exc}") from exc


ROW_SELECTOR = _compile("tr.traffic-information-infos")
STATION_SELECTOR = _compile("td.cell-line span.fw-bold")
EVENT_SELECTOR = _compile("td.cell-event span.flag")
PERIOD_SELECTOR = _compile("td.cell-period")
LOCATION_SELECTOR = _compile("td.cell-location")
INFO_SELECTOR = _compile("p:last-child")


class RowKind(enum.Enum):
    ELEVATOR = "elevator"
    SUBWAY = "subway"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ElevatorStatus:
    station: str = ""
    event: str = ""
    start_time: str = ""
    end_time: str = ""
    location: str = ""
    info: str = ""

    def to_dict(self) -> dict:
        return {
            "station": self.station,
            "event": self.event,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "location": self.location,
            "info": self.info,
        }


@dataclass(frozen=True)
class Snapshot:
    subway_lines: Tuple[str, ...] = field(default_factory=tuple)
    elevators: Tuple[ElevatorStatus, ...] = field(default_factory=tuple)
    last_updated: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "subway_lines": list(self.subway_lines),
            "elevators": [elevator.to_dict() for elevator in self.elevators],
            "last_updated": self.last_updated,
        }


@dataclass(frozen=True)
class ScrapeResult:
    subway_lines: Tuple[str, ...]
    elevators: Tuple[ElevatorStatus, ...]


def fetch_status_page(
    url: str = STATUS_URL,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    session: Optional[requests.Session] = None,
) -> str:
    client = session if session is not None else requests
    try:
        response = client.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise NetworkError(f"Failed to fetch status page: {exc}") from exc
    return response.text


def _first_text(element: Optional[Tag]) -> str:
    """Return the first text node below ``element``, stripped."""

    if element is None:
        return ""
    return next(iter(element.strings), "").strip()


def _full_text(element: Optional[Tag]) -> str:
    if element is None:
        return ""
    return element.get_text().strip()


def classify_row(row: Tag) -> RowKind:
    value = row.get(TRANSPORTATION_ATTRIBUTE)
    if value == "elevator":
        return RowKind.ELEVATOR
    if value == "subway":
        return RowKind.SUBWAY
    return RowKind.UNKNOWN


def extract_rows(document: BeautifulSoup) -> List[Tuple[RowKind, Tag]]:
    return [(classify_row(row), row) for row in ROW_SELECTOR.select(document)]


def split_period(period: str) -> Tuple[str, str]:
    """Split ``"<start> bis <end>"`` into its two halves.

    Anything past a second separator is ignored; missing halves are empty.
    """

    parts = period.split(PERIOD_SEPARATOR)
    start = parts[0].strip() if len(parts) > 0 else ""
    end = parts[1].strip() if len(parts) > 1 else ""
    return start, end


def _find_info(document: BeautifulSoup, row_id: str) -> str:
    # The detail text sits in a panel keyed by the row id, not necessarily inside the row.
    if not row_id:
        return ""
    for panel in document.find_all(id=row_id):
        paragraph = INFO_SELECTOR.select_one(panel)
        if paragraph is not None:
            return _first_text(paragraph)
    return ""


def parse_elevator_row(row: Tag, document: BeautifulSoup) -> ElevatorStatus:
    period = _full_text(PERIOD_SELECTOR.select_one(row))
    start_time, end_time = split_period(period)
    row_id = row.get("id") or ""
    return ElevatorStatus(
        station=_first_text(STATION_SELECTOR.select_one(row)),
        event=_first_text(EVENT_SELECTOR.select_one(row)),
        start_time=start_time,
        end_time=end_time,
        location=_first_text(LOCATION_SELECTOR.select_one(row)),
        info=_find_info(document, str(row_id)),
    )


def parse_line_row(row: Tag) -> str:
    event = _first_text(EVENT_SELECTOR.select_one(row))
    location = _first_text(LOCATION_SELECTOR.select_one(row))
    return f"{event}: {location}"


def parse_status_page(markup: str) -> ScrapeResult:
    document = BeautifulSoup(markup, "html.parser")
    subway_lines: List[str] = []
    elevators: List[ElevatorStatus] = []

    for kind, row in extract_rows(document):
        if kind is RowKind.ELEVATOR:
            elevators.append(parse_elevator_row(row, document))
        elif kind is RowKind.SUBWAY:
            subway_lines.append(parse_line_row(row))
        else:
            logger.debug(
                "Skipping row with %s=%r",
                TRANSPORTATION_ATTRIBUTE,
                row.get(TRANSPORTATION_ATTRIBUTE),
            )

    return ScrapeResult(subway_lines=tuple(subway_lines), elevators=tuple(elevators))


def build_snapshot(result: ScrapeResult, now_timestamp: int) -> Snapshot:
    subway_lines = result.subway_lines or (NO_LINE_DISRUPTIONS,)
    elevators = result.elevators or (ElevatorStatus(info=ALL_ELEVATORS_IN_SERVICE),)
    return Snapshot(
        subway_lines=tuple(subway_lines),
        elevators=tuple(elevators),
        last_updated=now_timestamp,
    )


def scrape_status(
    url: str = STATUS_URL,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    session: Optional[requests.Session] = None,
    clock: Callable[[], float] = time.time,
) -> Snapshot:
    markup = fetch_status_page(url, timeout=timeout, session=session)
    result = parse_status_page(markup)
    logger.info(
        "Scraped %s line disruption(s) and %s elevator outage(s)",
        len(result.subway_lines),
        len(result.elevators),
    )
    return build_snapshot(result, int(clock()))
