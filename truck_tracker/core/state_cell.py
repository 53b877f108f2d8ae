"""Owned, lock-guarded cell holding the current truck state."""
import threading
from dataclasses import dataclass

from .classifier import DEFAULT_THRESHOLDS, Thresholds, TruckState, classify, has_changed
from .packet_parser import DecodedSample


@dataclass(frozen=True)
class Transition:
    previous: TruckState
    current: TruckState

    @property
    def changed(self) -> bool:
        return has_changed(self.previous, self.current)


class StateCell:
    """Single writer slot for the truck state; transitions apply in call order."""

    def __init__(self, initial: TruckState | None = None):
        self.lock = threading.Lock()
        self._state = initial or TruckState()

    @property
    def current(self) -> TruckState:
        with self.lock:
            return self._state

    def apply(self, sample: DecodedSample,
              thresholds: Thresholds = DEFAULT_THRESHOLDS) -> Transition:
        """Classify ``sample`` against the stored state and store the result."""
        with self.lock:
            previous = self._state
            self._state = classify(sample, previous, thresholds)
            return Transition(previous, self._state)

    def reset(self, state: TruckState | None = None) -> None:
        with self.lock:
            self._state = state or TruckState()
