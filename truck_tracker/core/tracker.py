"""Packet-to-report pipeline for one monitored truck."""
import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from .classifier import DEFAULT_THRESHOLDS, Thresholds
from .packet_parser import MovementParser, RawPacket
from .reporter import LocationEvent, ReportError, Reporter, StateChangeEvent
from .state_cell import StateCell, Transition

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class Tracker:
    """Decode packets, update the owned state cell and notify the reporter."""

    def __init__(
        self,
        reporter: Reporter,
        unit_id: str = "0",
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        report_every_sample: bool = False,
        state: Optional[StateCell] = None,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Args:
            reporter: Sink receiving state changes and position updates
            unit_id: Serial number of the monitored truck
            thresholds: Classification thresholds
            report_every_sample: Report after every packet, not only on change
            state: State cell to update (a fresh one if None)
            clock: Millisecond wall clock used to stamp state events
        """
        self.reporter = reporter
        self.unit_id = unit_id
        self.thresholds = thresholds
        self.report_every_sample = report_every_sample
        self.state = state or StateCell()
        self.clock = clock
        self.parser = MovementParser()
        self.report_count = 0
        self.report_error_count = 0

    # ========== Data path ==========
    def on_packet(self, data: RawPacket) -> Optional[Transition]:
        """Handle one raw notification; None when the packet was dropped."""
        sample = self.parser.parse(data)
        if sample is None:
            return None

        transition = self.state.apply(sample, self.thresholds)
        if transition.changed:
            logger.info("[Tracker] %s -> %s (gz=%.2f dps)",
                        transition.previous.type.name, transition.current.type.name,
                        sample.rotation_z)
        if transition.changed or self.report_every_sample:
            self._report_state(transition)
        return transition

    async def run(self, queue: "asyncio.Queue[Optional[bytes]]") -> None:
        """Consume packets in arrival order until a None sentinel arrives.

        Each packet is handled in a worker thread, one at a time, so a slow
        reporter never blocks the loop delivering BLE notifications.
        """
        while True:
            data = await queue.get()
            try:
                if data is None:
                    break
                await asyncio.to_thread(self.on_packet, data)
            finally:
                queue.task_done()
        logger.info("[Tracker] Stopped after %d frames", self.parser.frame_count)

    def update_location(self, latitude: float, longitude: float,
                        speed: Optional[float] = None) -> bool:
        """Forward a position fix for this truck. Returns False if it was not delivered."""
        event = LocationEvent(self.unit_id, latitude, longitude, speed)
        try:
            self.reporter.report_location(event)
        except ReportError as e:
            self.report_error_count += 1
            logger.error("[Tracker] Location report failed: %s", e)
            return False
        self.report_count += 1
        return True

    def get_stats(self) -> Dict[str, object]:
        stats: Dict[str, object] = dict(self.parser.get_stats())
        stats.update({
            "report_count": self.report_count,
            "report_error_count": self.report_error_count,
            "state": self.state.current.type.name,
        })
        return stats

    def _report_state(self, transition: Transition) -> None:
        event = StateChangeEvent(self.unit_id, transition.current.type, self.clock())
        try:
            self.reporter.report_state(event)
        except ReportError as e:
            self.report_error_count += 1
            logger.error("[Tracker] State report failed: %s", e)
            return
        self.report_count += 1
