"""
SensorTag movement packet parser
Decodes the raw BLE notification of the CC2650 movement service
"""
import logging
import struct
from dataclasses import dataclass
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)

RawPacket = Union[bytes, bytearray, memoryview]

# Movement packet layout (little-endian int16 words):
#   0 gyro X | 2 gyro Y | 4 gyro Z | 6 accel X | 8 accel Y | 10 accel Z | 12..17 mag
OFFSET_GYRO_Z = 4
OFFSET_ACCEL = 6
MIN_PACKET_SIZE = 12

# Full-scale ranges configured on the sensor
GYRO_RANGE = 250.0         # deg/s
ACCEL_RANGE = 8.0          # g

SIGNED_WORD_VALUE_COUNT = 32767 + 1


class TrackerError(Exception):
    """Base class for truck tracker errors."""


class MalformedPacket(TrackerError):
    """Raised when a raw packet cannot be decoded into a sample."""


@dataclass(frozen=True)
class DecodedSample:
    """Calibrated measurements from one movement packet"""
    rotation_z: float    # deg/s
    accel_x: float       # g
    accel_y: float       # g
    accel_z: float       # g


def convert_raw_word(word: int, full_scale: float) -> float:
    """Scale a signed 16-bit word onto [-full_scale, +full_scale)."""
    if not full_scale > 0:
        raise ValueError(f"full scale range must be positive, got {full_scale!r}")
    return word / (SIGNED_WORD_VALUE_COUNT / full_scale)


def decode(raw: RawPacket) -> DecodedSample:
    """
    Decode a movement packet.
    Raises MalformedPacket for short or non bytes-like input.
    """
    if not isinstance(raw, (bytes, bytearray, memoryview)):
        raise MalformedPacket(f"expected bytes-like packet, got {type(raw).__name__}")
    if len(raw) < MIN_PACKET_SIZE:
        raise MalformedPacket(f"packet too short: {len(raw)} bytes, need {MIN_PACKET_SIZE}")

    gz = struct.unpack_from('<h', raw, OFFSET_GYRO_Z)[0]
    ax, ay, az = struct.unpack_from('<hhh', raw, OFFSET_ACCEL)

    return DecodedSample(
        rotation_z=convert_raw_word(gz, GYRO_RANGE),
        accel_x=convert_raw_word(ax, ACCEL_RANGE),
        accel_y=convert_raw_word(ay, ACCEL_RANGE),
        accel_z=convert_raw_word(az, ACCEL_RANGE),
    )


class MovementParser:
    """Decode movement packets, counting and dropping malformed ones."""

    def __init__(self):
        self.frame_count = 0
        self.error_count = 0

    def parse(self, data: RawPacket) -> Optional[DecodedSample]:
        """
        Parse BLE notification data
        Returns the decoded sample or None if the packet was dropped
        """
        try:
            sample = decode(data)
        except MalformedPacket as e:
            self.error_count += 1
            logger.warning("[Parser] Dropped packet: %s", e)
            return None
        self.frame_count += 1
        return sample

    def get_stats(self) -> Dict[str, int]:
        """Get parser statistics"""
        return {
            "frame_count": self.frame_count,
            "error_count": self.error_count,
        }

    def reset_stats(self):
        """Reset statistics"""
        self.frame_count = 0
        self.error_count = 0
