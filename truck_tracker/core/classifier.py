"""
Truck bed state classifier.

Turns a decoded movement sample into the bed position (raised / lowered) and
whether the bed is vibrating. Position is a hysteresis latch on the gyro Z
rate: it flips only when the rate leaves the dead-band between
``-rotation_dps`` and ``+rotation_dps``. Vibration is recomputed from every
sample with no memory.
"""
import math
from dataclasses import dataclass
from enum import Enum

from .packet_parser import DecodedSample

# Calibrated for the SensorTag mounted on the bed hinge
ROTATION_THRESHOLD_DPS = 14.8410
VIBRATION_THRESHOLD_G = 0.2175


@dataclass(frozen=True)
class Thresholds:
    """Classification thresholds, both compared against magnitudes."""
    rotation_dps: float = ROTATION_THRESHOLD_DPS
    vibration_g: float = VIBRATION_THRESHOLD_G

    def __post_init__(self):
        for name in ("rotation_dps", "vibration_g"):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                raise ValueError(f"{name} must be a positive finite number, got {value!r}")


DEFAULT_THRESHOLDS = Thresholds()


class StateType(Enum):
    """Combined state label sent to the reporting sink."""
    LOWERED = "lowered"
    LOWERED_VIBRATING = "lowered_vibrating"
    RAISED = "raised"
    RAISED_VIBRATING = "raised_vibrating"


@dataclass(frozen=True)
class TruckState:
    raised: bool = False
    vibrating: bool = False

    @property
    def type(self) -> StateType:
        if self.raised:
            return StateType.RAISED_VIBRATING if self.vibrating else StateType.RAISED
        return StateType.LOWERED_VIBRATING if self.vibrating else StateType.LOWERED


def classify(sample: DecodedSample, previous: TruckState,
             thresholds: Thresholds = DEFAULT_THRESHOLDS) -> TruckState:
    """Return the state that follows ``previous`` after ``sample``."""
    if sample.rotation_z >= thresholds.rotation_dps:
        raised = True
    elif sample.rotation_z <= -thresholds.rotation_dps:
        raised = False
    else:
        raised = previous.raised

    vibrating = any(
        abs(a) >= thresholds.vibration_g
        for a in (sample.accel_x, sample.accel_y, sample.accel_z)
    )
    return TruckState(raised=raised, vibrating=vibrating)


def has_changed(previous: TruckState, current: TruckState) -> bool:
    return (previous.raised != current.raised
            or previous.vibrating != current.vibrating)
