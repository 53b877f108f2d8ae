"""Reporting sinks for truck state changes and position updates."""
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import requests

from .classifier import StateType
from .packet_parser import TrackerError

logger = logging.getLogger(__name__)


class ReportError(TrackerError):
    """Raised when a sink fails to deliver an event."""


@dataclass(frozen=True)
class StateChangeEvent:
    unit_id: str
    state: StateType
    timestamp_ms: int


@dataclass(frozen=True)
class LocationEvent:
    unit_id: str
    latitude: float
    longitude: float
    speed: Optional[float] = None    # m/s, None when the fix has no speed


class Reporter(Protocol):
    def report_state(self, event: StateChangeEvent) -> None: ...

    def report_location(self, event: LocationEvent) -> None: ...

    def close(self) -> None: ...


class LogReporter:
    """Write events to the log instead of a backend."""

    def report_state(self, event: StateChangeEvent) -> None:
        logger.info("[Report] unit=%s state=%s t=%d",
                    event.unit_id, event.state.value, event.timestamp_ms)

    def report_location(self, event: LocationEvent) -> None:
        logger.info("[Report] unit=%s lat=%.6f lon=%.6f speed=%s",
                    event.unit_id, event.latitude, event.longitude, event.speed)

    def close(self) -> None:
        pass


class HttpReporter:
    """Post events as JSON to the tracking backend hub."""

    STATE_METHOD = "PostStateChange"
    LOCATION_METHOD = "PostGeo"

    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def report_state(self, event: StateChangeEvent) -> None:
        self._post(self.STATE_METHOD, {
            "state": event.state.name,
            "time": event.timestamp_ms,
            "serialNumber": event.unit_id,
        })

    def report_location(self, event: LocationEvent) -> None:
        self._post(self.LOCATION_METHOD, {
            "serialNumber": event.unit_id,
            "latitude": event.latitude,
            "longitude": event.longitude,
            "speed": event.speed,
        })

    def close(self) -> None:
        self.session.close()

    def _post(self, method: str, payload: dict) -> None:
        url = f"{self.base_url}/{method}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ReportError(f"{method} failed: {e}") from e
        logger.debug("[Report] %s -> %s", method, response.status_code)
