"""Tests for the SensorTag BLE link with a fake bleak client."""

from __future__ import annotations

import asyncio

import pytest
from bleak import BleakError

from truck_tracker.core.ble_client import (
    DEFAULT_MOVEMENT_CONFIG,
    MOVEMENT_CONFIG_UUID,
    MOVEMENT_DATA_UUID,
    MOVEMENT_PERIOD_UUID,
    LinkState,
    SensorTagLink,
    queue_sink,
)


class FakeClient:
    def __init__(self, address: str, disconnected_callback=None) -> None:
        self.address = address
        self.disconnected_callback = disconnected_callback
        self.is_connected = False
        self.log = []
        self.callback = None

    async def connect(self, timeout: float = 10.0) -> None:
        self.is_connected = True
        self.log.append(("connect", timeout))

    async def disconnect(self) -> None:
        self.is_connected = False
        self.log.append(("disconnect",))
        if self.disconnected_callback:
            self.disconnected_callback(self)

    def drop(self) -> None:
        """Simulate the sensor going out of range."""
        self.is_connected = False
        if self.disconnected_callback:
            self.disconnected_callback(self)

    async def write_gatt_char(self, uuid, data, response=False) -> None:
        self.log.append(("write", uuid, bytes(data)))

    async def start_notify(self, uuid, callback) -> None:
        self.callback = callback
        self.log.append(("start_notify", uuid))

    async def stop_notify(self, uuid) -> None:
        self.callback = None
        self.log.append(("stop_notify", uuid))


def make_link(received: list) -> SensorTagLink:
    return SensorTagLink(received.append, client_factory=FakeClient)


def test_handshake_runs_in_order() -> None:
    link = make_link([])

    async def scenario() -> None:
        await link.connect("B0:B4:48:C0:4C:85", timeout=3.0)
        assert link.state is LinkState.CONNECTED
        await link.configure()

    asyncio.run(scenario())

    assert link.state is LinkState.CONFIGURED
    assert link.client.log == [
        ("connect", 3.0),
        ("write", MOVEMENT_PERIOD_UUID, b"\x0a"),
        ("start_notify", MOVEMENT_DATA_UUID),
        ("write", MOVEMENT_CONFIG_UUID, DEFAULT_MOVEMENT_CONFIG),
    ]
    assert link.client.address == "B0:B4:48:C0:4C:85"


def test_notifications_are_delivered_as_bytes() -> None:
    received: list = []
    link = make_link(received)

    async def scenario() -> None:
        await link.connect("addr")
        await link.configure()
        link.client.callback(None, bytearray(b"\x01" * 18))

    asyncio.run(scenario())

    assert received == [b"\x01" * 18]
    assert type(received[0]) is bytes


def test_out_of_order_step_raises() -> None:
    link = make_link([])

    async def scenario() -> None:
        with pytest.raises(BleakError):
            await link.set_period()
        await link.connect("addr")
        with pytest.raises(BleakError):
            await link.write_config()
        with pytest.raises(BleakError):
            await link.connect("addr")

    asyncio.run(scenario())


def test_disconnect_stops_notify() -> None:
    link = make_link([])

    async def scenario() -> FakeClient:
        await link.connect("addr")
        await link.configure()
        client = link.client
        await link.disconnect()
        return client

    client = asyncio.run(scenario())

    assert client.log[-2:] == [("stop_notify", MOVEMENT_DATA_UUID), ("disconnect",)]
    assert link.state is LinkState.DISCONNECTED
    assert link.client is None


def test_custom_period_and_config() -> None:
    link = SensorTagLink(lambda _: None, period=0x64, movement_config=b"\x7f\x00",
                         client_factory=FakeClient)

    async def scenario() -> None:
        await link.connect("addr")
        await link.configure()

    asyncio.run(scenario())

    writes = [entry for entry in link.client.log if entry[0] == "write"]
    assert writes == [("write", MOVEMENT_PERIOD_UUID, b"\x64"), ("write", MOVEMENT_CONFIG_UUID, b"\x7f\x00")]


def test_queue_sink_keeps_order() -> None:
    async def scenario() -> list:
        queue: asyncio.Queue = asyncio.Queue()
        sink = queue_sink(queue)
        for i in range(3):
            sink(bytes([i]))
        return [queue.get_nowait() for _ in range(3)]

    assert asyncio.run(scenario()) == [b"\x00", b"\x01", b"\x02"]


def test_scan_sorts_by_rssi(monkeypatch: pytest.MonkeyPatch) -> None:
    from types import SimpleNamespace

    from truck_tracker.core import ble_client

    async def fake_discover(timeout: float, return_adv: bool):
        assert return_adv
        return {
            "AA": (SimpleNamespace(name=None), SimpleNamespace(rssi=-80, local_name="CC2650 SensorTag")),
            "BB": (SimpleNamespace(name="phone"), SimpleNamespace(rssi=-40, local_name=None)),
        }

    monkeypatch.setattr(ble_client.BleakScanner, "discover", staticmethod(fake_discover))

    devices = asyncio.run(SensorTagLink.scan(timeout=0.1))

    assert [(d.name, d.address, d.rssi) for d in devices] == [
        ("phone", "BB", -40),
        ("CC2650 SensorTag", "AA", -80),
    ]


def test_link_lost_updates_state_and_notifies() -> None:
    lost = []
    link = SensorTagLink(lambda _: None, client_factory=FakeClient,
                         on_disconnect=lambda: lost.append(True))

    async def scenario() -> None:
        await link.connect("addr")
        await link.configure()
        link.client.drop()

    asyncio.run(scenario())

    assert lost == [True]
    assert link.link_lost is True
    assert link.state is LinkState.DISCONNECTED


def test_requested_disconnect_is_not_a_lost_link() -> None:
    lost = []
    link = SensorTagLink(lambda _: None, client_factory=FakeClient,
                         on_disconnect=lambda: lost.append(True))

    async def scenario() -> None:
        await link.connect("addr")
        await link.configure()
        await link.disconnect()

    asyncio.run(scenario())

    assert lost == []
    assert link.link_lost is False


def test_link_lost_ends_queue_consumer() -> None:
    async def scenario() -> list:
        queue: asyncio.Queue = asyncio.Queue()
        link = SensorTagLink(queue_sink(queue), client_factory=FakeClient,
                             on_disconnect=lambda: queue.put_nowait(None))
        await link.connect("addr")
        await link.configure()
        link.client.callback(None, bytearray(18))
        link.client.drop()
        return [queue.get_nowait() for _ in range(queue.qsize())]

    assert asyncio.run(scenario()) == [bytes(18), None]
