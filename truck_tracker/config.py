"""Configuration dataclasses for the truck tracker."""
from dataclasses import dataclass, field

from truck_tracker.core.ble_client import DEFAULT_MOVEMENT_CONFIG, DEFAULT_PERIOD
from truck_tracker.core.classifier import Thresholds


@dataclass
class SensorConfig:
    address: str = "B0:B4:48:C0:4C:85"
    period: int = DEFAULT_PERIOD              # x10 ms between packets
    movement_config: bytes = DEFAULT_MOVEMENT_CONFIG
    connect_timeout: float = 10.0

    def __post_init__(self):
        if not 0 < self.period <= 0xFF:
            raise ValueError(f"period must fit in one byte and be non-zero, got {self.period}")


@dataclass
class BackendConfig:
    url: str | None = None    # log events locally when unset
    unit_id: str = "0"
    timeout: float = 5.0


@dataclass
class TrackerConfig:
    sensor: SensorConfig = field(default_factory=SensorConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    thresholds: Thresholds = field(default_factory=Thresholds)
    report_every_sample: bool = False


__all__ = ["BackendConfig", "SensorConfig", "Thresholds", "TrackerConfig"]
