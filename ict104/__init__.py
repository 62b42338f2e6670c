"""
ICT-104 Bill Acceptor Driver Package.

Async driver for bill acceptors speaking the single-byte ICT-104
RS232 protocol.

Example:
    import asyncio
    from ict104 import BillAcceptorDriver, EventType

    async def on_bill_accepted(event_type: str, event):
        print(f"Bill accepted: {event.amount}")

    async def main():
        driver = BillAcceptorDriver(port='/dev/ttyUSB0')
        driver.set_bill_types([1000, 5000, 10000, 50000, 100000])
        driver.add_callback(EventType.BILL_ACCEPTED, on_bill_accepted)

        await driver.open_port()
        await driver.initialize_acceptor()

        await asyncio.Future()  # Run forever

    asyncio.run(main())
"""

from .constants import (
    Command,
    EventType,
    Mode,
    Recognition,
    StatusCode,
    CRITICAL_FAULTS,
    describe_byte,
    describe_bytes,
    get_status_name,
    is_critical_fault,
)
from .exceptions import (
    BillAcceptorError,
    DeviceError,
    DeviceTimeoutError,
    StatusTimeoutError,
    NotConfiguredError,
)
from .value_objects import (
    AcceptEvent,
    FaultEvent,
    ModeChange,
    StatusKind,
    StatusReport,
)
from .settings import (
    EngineSettings,
    LoggingSettings,
    SerialPortSettings,
    Settings,
    get_settings,
)
from .transport import SerialTransport, Transport
from .engine import ProtocolEngine
from .event_system import AppEventType, EventConsumer, EventPublisher
from .driver import BillAcceptorDriver


__all__ = [
    # Main driver
    'BillAcceptorDriver',
    'ProtocolEngine',

    # Constants and enums
    'Command',
    'EventType',
    'Mode',
    'Recognition',
    'StatusCode',
    'CRITICAL_FAULTS',

    # Utility functions
    'describe_byte',
    'describe_bytes',
    'get_status_name',
    'is_critical_fault',

    # Value objects
    'AcceptEvent',
    'FaultEvent',
    'ModeChange',
    'StatusKind',
    'StatusReport',

    # Exceptions
    'BillAcceptorError',
    'DeviceError',
    'DeviceTimeoutError',
    'StatusTimeoutError',
    'NotConfiguredError',

    # Settings
    'EngineSettings',
    'LoggingSettings',
    'SerialPortSettings',
    'Settings',
    'get_settings',

    # Transport and events
    'SerialTransport',
    'Transport',
    'AppEventType',
    'EventConsumer',
    'EventPublisher',
]

__version__ = '1.0.0'
