"""
Truck bed tracker.

Connects to the SensorTag on the truck bed, classifies every movement packet
and reports state changes to the backend (or to the log when no backend URL
is given).
"""
import argparse
import asyncio
import contextlib
import logging
from typing import List, Optional

from bleak import BleakError

from truck_tracker.config import BackendConfig, SensorConfig, Thresholds, TrackerConfig
from truck_tracker.core.ble_client import SensorTagLink, queue_sink
from truck_tracker.core.reporter import HttpReporter, LogReporter, Reporter
from truck_tracker.core.tracker import Tracker

logger = logging.getLogger("truck_tracker")


def build_reporter(backend: BackendConfig) -> Reporter:
    if backend.url:
        return HttpReporter(backend.url, timeout=backend.timeout)
    return LogReporter()


async def run_tracker(config: TrackerConfig) -> Tracker:
    """Stream packets from the sensor into a tracker until cancelled.

    Raises BleakError when the sensor drops the link.
    """
    reporter = build_reporter(config.backend)
    tracker = Tracker(
        reporter,
        unit_id=config.backend.unit_id,
        thresholds=config.thresholds,
        report_every_sample=config.report_every_sample,
    )
    queue: asyncio.Queue = asyncio.Queue()
    link = SensorTagLink(
        queue_sink(queue),
        period=config.sensor.period,
        movement_config=config.sensor.movement_config,
        on_disconnect=lambda: queue.put_nowait(None),
    )
    consumer = asyncio.create_task(tracker.run(queue))
    try:
        await link.connect(config.sensor.address, timeout=config.sensor.connect_timeout)
        await link.configure()
        await consumer
        if link.link_lost:
            raise BleakError(f"Link lost: {config.sensor.address}")
    finally:
        await link.disconnect()
        consumer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await consumer
        reporter.close()
        logger.info("[Shutdown] %s", tracker.get_stats())
    return tracker


async def scan_devices(timeout: float) -> None:
    devices = await SensorTagLink.scan(timeout=timeout)
    if not devices:
        print("No devices found.")
        return
    print(f"Found {len(devices)} device(s):")
    for i, device in enumerate(devices, 1):
        print(f"{i}. {device.name} [{device.address}] RSSI: {device.rssi} dBm")


def build_parser() -> argparse.ArgumentParser:
    default_sensor = SensorConfig()
    default_backend = BackendConfig()
    default_thresholds = Thresholds()

    parser = argparse.ArgumentParser(
        prog='truck-tracker',
        description='Truck bed state monitor (SensorTag over BLE)'
    )
    parser.add_argument(
        '--log-level',
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO)'
    )
    sub = parser.add_subparsers(dest='command', required=True)

    scan = sub.add_parser('scan', help='List nearby BLE devices')
    scan.add_argument('--timeout', type=float, default=5.0, help='Scan time in seconds (default: 5)')

    run = sub.add_parser('run', help='Track the truck bed state')
    run.add_argument(
        '--address',
        default=default_sensor.address,
        help=f'SensorTag address (default: {default_sensor.address})'
    )
    run.add_argument(
        '--period',
        type=int,
        default=default_sensor.period,
        help=f'Sensor period in units of 10 ms (default: {default_sensor.period})'
    )
    run.add_argument(
        '--backend-url',
        default=default_backend.url,
        help='Backend hub URL; events are only logged when omitted'
    )
    run.add_argument(
        '--unit-id',
        default=default_backend.unit_id,
        help=f'Serial number of the truck (default: {default_backend.unit_id})'
    )
    run.add_argument(
        '--rotation-threshold',
        type=float,
        default=default_thresholds.rotation_dps,
        help=f'Gyro Z rate that raises/lowers the bed, deg/s (default: {default_thresholds.rotation_dps})'
    )
    run.add_argument(
        '--vibration-threshold',
        type=float,
        default=default_thresholds.vibration_g,
        help=f'Acceleration magnitude that counts as vibration, g (default: {default_thresholds.vibration_g})'
    )
    run.add_argument(
        '--report-every-sample',
        action='store_true',
        help='Report the state after every packet instead of only on change'
    )
    return parser


def config_from_args(args: argparse.Namespace) -> TrackerConfig:
    return TrackerConfig(
        sensor=SensorConfig(address=args.address, period=args.period),
        backend=BackendConfig(url=args.backend_url, unit_id=args.unit_id),
        thresholds=Thresholds(
            rotation_dps=args.rotation_threshold,
            vibration_g=args.vibration_threshold
        ),
        report_every_sample=args.report_every_sample
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    if args.command == 'scan':
        try:
            asyncio.run(scan_devices(args.timeout))
        except BleakError as e:
            logger.error("[BLE] %s", e)
            return 1
        return 0

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    try:
        asyncio.run(run_tracker(config))
    except KeyboardInterrupt:
        logger.info("[Shutdown] Interrupted by user")
    except BleakError as e:
        logger.error("[BLE] %s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
