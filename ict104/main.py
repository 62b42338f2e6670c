"""
ICT-104 Bill Acceptor Driver - Command Line Entry Point.

Usage:
    ict104 --port /dev/ttyUSB0 --bill-types 1000 5000 10000 50000 100000 [--debug]
    ict104 --port /dev/ttyUSB0 --bill-types ... --status

Opens the port, resets the acceptor (the power-on handshake disables it),
enables acceptance and prints every accepted bill until Ctrl+C.
"""

import argparse
import asyncio
import logging
import signal
import sys
from dataclasses import replace
from typing import Optional, Sequence

from .constants import EventType
from .driver import BillAcceptorDriver
from .event_system import AppEventType, EventConsumer, EventPublisher
from .exceptions import BillAcceptorError
from .loggers import setup_logging
from .settings import Settings
from .value_objects import ModeChange


logger = logging.getLogger(__name__)

# Time allowed for the power-on handshake after RESET
RESET_SETTLE_S = 3.0


def on_bill_accepted(event: dict) -> None:
    """Print an accepted bill."""
    amount = event["value"]
    if amount < 0:
        print("Bill accepted, but its type is not in the bill type table")
    else:
        print(f"Bill accepted: {amount}")


def on_critical_fault(event: dict) -> None:
    """Print a fault that forced a reset."""
    print(f"Fault: {event['name']} (0x{event['code']:02X}), resetting")


async def on_mode_changed(event_type: str, change: ModeChange) -> None:
    logger.debug(f"Mode: {change.previous.name} -> {change.current.name}")


async def run(settings: Settings, status_only: bool = False) -> int:
    """
    Run the driver until interrupted.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    queue: asyncio.Queue = asyncio.Queue()
    consumer = EventConsumer(queue)
    consumer.register_handler(AppEventType.BILL_ACCEPTED, on_bill_accepted)
    consumer.register_handler(AppEventType.CRITICAL_FAULT, on_critical_fault)

    driver = BillAcceptorDriver(settings=settings, publisher=EventPublisher(queue))
    driver.add_callback(EventType.MODE_CHANGED, on_mode_changed)

    try:
        if not status_only:
            driver.ensure_configured()
    except BillAcceptorError as e:
        print(f"Configuration error: {e.message}")
        return 1

    if not await driver.open_port():
        print(f"Could not open {driver.current_port}")
        return 1

    try:
        if status_only:
            report = await asyncio.wait_for(driver.check_status(), timeout=10.0)
            print(f"Status: {report}")
            return 0

        await consumer.start_consuming()
        await driver.initialize_acceptor()
        await asyncio.sleep(RESET_SETTLE_S)
        if not await driver.enable_acceptor():
            print("Could not enable the acceptor")
            return 1

        print("Accepting bills. Press Ctrl+C to exit.")

        shutdown_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, shutdown_event.set)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                pass

        await shutdown_event.wait()
        await driver.disable_acceptor()
        return 0
    except BillAcceptorError as e:
        logger.error(f"Driver error: {e.message}")
        return 1
    except asyncio.TimeoutError:
        print("Status request timed out")
        return 1
    finally:
        await consumer.stop_consuming()
        await driver.close_port()


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='ICT-104 Bill Acceptor Driver',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        '--port', '-p',
        type=str,
        default=None,
        help='Serial port path (default: $ICT104_PORT)',
    )
    parser.add_argument(
        '--bill-types', '-b',
        type=int,
        nargs=5,
        metavar='AMOUNT',
        default=None,
        help='Denominations for bill types 1..5 (default: $ICT104_BILL_TYPES)',
    )
    parser.add_argument(
        '--status', '-s',
        action='store_true',
        help='Print the acceptor status and exit',
    )
    parser.add_argument(
        '--debug', '-d',
        action='store_true',
        help='Enable debug logging (shows every TX/RX byte)',
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace, base: Optional[Settings] = None) -> Settings:
    """Overlay command line arguments on environment settings."""
    settings = base or Settings.from_env()
    if args.port:
        settings.serial = replace(settings.serial, port=args.port)
    if args.bill_types:
        settings.bill_types = list(args.bill_types)
    if args.debug:
        settings.logging = replace(settings.logging, debug=True)
    return settings


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    settings = build_settings(args)

    setup_logging(
        level=logging.DEBUG if settings.logging.debug else logging.INFO,
        log_file=settings.logging.log_file,
        loki_url=settings.logging.loki_url,
        app=settings.logging.app,
    )

    try:
        return asyncio.run(run(settings, status_only=args.status))
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
