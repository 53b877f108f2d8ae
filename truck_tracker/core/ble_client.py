import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from bleak import BleakClient, BleakError, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic

logger = logging.getLogger(__name__)

# CC2650 SensorTag movement service
MOVEMENT_SERVICE_UUID = "f000aa80-0451-4000-b000-000000000000"
MOVEMENT_DATA_UUID = "f000aa81-0451-4000-b000-000000000000"
MOVEMENT_CONFIG_UUID = "f000aa82-0451-4000-b000-000000000000"
MOVEMENT_PERIOD_UUID = "f000aa83-0451-4000-b000-000000000000"

DEFAULT_PERIOD = 0x0A                  # x10 ms
# Gyro Z + accel X/Y/Z enabled, accelerometer range 8 g
DEFAULT_MOVEMENT_CONFIG = bytes([0x39, 0x02])


@dataclass
class DeviceInfo:
    name: str
    address: str
    rssi: int


class LinkState(Enum):
    DISCONNECTED = 0
    CONNECTED = 1
    PERIOD_SET = 2
    NOTIFYING = 3
    CONFIGURED = 4


def queue_sink(queue: asyncio.Queue) -> Callable[[bytes], None]:
    """Adapt an unbounded queue into an on_data callback."""
    return queue.put_nowait


class SensorTagLink:
    """Connect to a SensorTag and stream its movement packets.

    The handshake runs connect -> write period -> enable notify -> write
    configuration; each step checks that the previous one completed.
    """

    def __init__(
        self,
        on_data: Callable[[bytes], None],
        period: int = DEFAULT_PERIOD,
        movement_config: bytes = DEFAULT_MOVEMENT_CONFIG,
        client_factory: Callable[..., BleakClient] = BleakClient,
        on_disconnect: Optional[Callable[[], None]] = None,
    ):
        self.on_data = on_data
        self.on_disconnect = on_disconnect
        self.period = period
        self.movement_config = bytes(movement_config)
        self.client_factory = client_factory
        self.client: Optional[BleakClient] = None
        self.state = LinkState.DISCONNECTED
        self.link_lost = False
        self._closing = False

    @staticmethod
    async def scan(timeout: float = 4.0) -> List[DeviceInfo]:
        devices = await BleakScanner.discover(timeout=timeout, return_adv=True)
        result = []
        for address, (device, adv_data) in devices.items():
            rssi = adv_data.rssi if hasattr(adv_data, 'rssi') else 0
            name = device.name or adv_data.local_name or "(unknown)"
            result.append(DeviceInfo(name=name, address=address, rssi=rssi))
        result.sort(key=lambda x: x.rssi, reverse=True)
        return result

    async def connect(self, address: str, timeout: float = 10.0):
        self._expect(LinkState.DISCONNECTED, "connect")
        self.client = self.client_factory(address, disconnected_callback=self._on_client_disconnected)
        self.link_lost = False
        self._closing = False
        await self.client.connect(timeout=timeout)
        self.state = LinkState.CONNECTED
        logger.info("[BLE] Connected: %s", address)

    async def configure(self):
        """Run the remaining handshake steps until packets are streaming."""
        await self.set_period()
        await self.start_notify()
        await self.write_config()

    async def set_period(self):
        self._expect(LinkState.CONNECTED, "set period")
        await self.client.write_gatt_char(MOVEMENT_PERIOD_UUID, bytes([self.period]), response=True)
        self.state = LinkState.PERIOD_SET
        logger.debug("[BLE] Period set to %d0 ms", self.period)

    async def start_notify(self):
        self._expect(LinkState.PERIOD_SET, "start notify")

        def callback(_: BleakGATTCharacteristic, data: bytearray):
            self.on_data(bytes(data))

        await self.client.start_notify(MOVEMENT_DATA_UUID, callback)
        self.state = LinkState.NOTIFYING
        logger.info("[BLE] Start notify %s", MOVEMENT_DATA_UUID)

    async def write_config(self):
        self._expect(LinkState.NOTIFYING, "write configuration")
        await self.client.write_gatt_char(MOVEMENT_CONFIG_UUID, self.movement_config, response=True)
        self.state = LinkState.CONFIGURED
        logger.info("[BLE] Movement sensors enabled (config=%s)", self.movement_config.hex())

    async def stop_notify(self):
        if self.client and self.state in (LinkState.NOTIFYING, LinkState.CONFIGURED):
            await self.client.stop_notify(MOVEMENT_DATA_UUID)
            self.state = LinkState.PERIOD_SET
            logger.info("[BLE] Stop notify")

    async def disconnect(self):
        self._closing = True
        if self.client and self.client.is_connected:
            await self.stop_notify()
            await self.client.disconnect()
        self.client = None
        self.state = LinkState.DISCONNECTED
        logger.info("[BLE] Disconnected.")

    def _on_client_disconnected(self, _: BleakClient):
        if self._closing or self.state is LinkState.DISCONNECTED:
            return
        self.state = LinkState.DISCONNECTED
        self.link_lost = True
        logger.warning("[BLE] Link lost")
        if self.on_disconnect:
            self.on_disconnect()

    def _expect(self, state: LinkState, step: str):
        if self.state is not state:
            raise BleakError(f"Cannot {step} in state {self.state.name}, expected {state.name}.")
