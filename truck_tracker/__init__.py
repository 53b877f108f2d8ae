"""Truck bed monitor for a SensorTag movement sensor."""
from truck_tracker.core.classifier import (
    DEFAULT_THRESHOLDS,
    StateType,
    Thresholds,
    TruckState,
    classify,
    has_changed,
)
from truck_tracker.core.packet_parser import DecodedSample, MalformedPacket, TrackerError, decode

__version__ = "0.1.0"
