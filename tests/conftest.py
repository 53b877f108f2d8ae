import struct

import pytest


def make_packet(gz: int = 0, ax: int = 0, ay: int = 0, az: int = 0,
                gx: int = 0, gy: int = 0, mag: bytes = bytes(6)) -> bytes:
    """Build an 18-byte movement packet from raw signed words."""
    return struct.pack('<hhhhhh', gx, gy, gz, ax, ay, az) + mag


@pytest.fixture()
def packet():
    return make_packet
