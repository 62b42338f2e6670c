"""
ICT-104 Bill Acceptor Driver (Application Layer).

High-level async driver for ICT-104 compatible bill acceptors.
This is the main entry point for application code.

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

import logging
from typing import Optional, Sequence

from .constants import EventType, Mode
from .engine import EventCallback, ProtocolEngine
from .event_system import EventPublisher
from .exceptions import NotConfiguredError
from .settings import Settings, get_settings
from .transport import SerialTransport
from .value_objects import AcceptEvent, FaultEvent, StatusReport


logger = logging.getLogger(__name__)


class BillAcceptorDriver:
    """
    Async driver for one ICT-104 bill acceptor.

    Wires a SerialTransport to a ProtocolEngine: every inbound chunk
    is fed to the engine, and controller calls are delegated to it.

    Attributes:
        engine: Protocol engine for this connection.
        transport: Serial transport for this connection.
    """

    name = "ICT104"

    def __init__(
        self,
        port: Optional[str] = None,
        settings: Optional[Settings] = None,
        publisher: Optional[EventPublisher] = None,
        transport: Optional[SerialTransport] = None,
    ) -> None:
        """
        Initialize the driver.

        Args:
            port: Serial port path (e.g., '/dev/ttyUSB0').
            settings: Driver settings (defaults to get_settings()).
            publisher: Optional application event publisher.
            transport: Transport to use instead of a new SerialTransport.
        """
        self._settings = settings or get_settings()
        self._transport = transport or SerialTransport(
            port=port,
            settings=self._settings.serial,
        )
        if port and transport is not None:
            self._transport.set_port(port)

        self._engine = ProtocolEngine(self._transport, self._settings.engine)
        self._transport.set_data_handler(self._engine.feed_bytes)

        self._publisher = publisher
        if publisher is not None:
            self._engine.add_callback(EventType.BILL_ACCEPTED, self._publish_bill)
            self._engine.add_callback(EventType.CRITICAL_FAULT, self._publish_fault)

        if self._settings.bill_types is not None:
            self._engine.set_bill_types(self._settings.bill_types)

        logger.info(f"{self.name} driver created")

    @property
    def engine(self) -> ProtocolEngine:
        return self._engine

    @property
    def transport(self) -> SerialTransport:
        return self._transport

    @property
    def is_open(self) -> bool:
        """Check if the serial port is open."""
        return self._transport.is_open

    @property
    def current_port(self) -> Optional[str]:
        """Get serial port path."""
        return self._transport.port

    @property
    def mode(self) -> Mode:
        """Get current engine mode."""
        return self._engine.mode

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_port(self, port: str) -> bool:
        """
        Set the serial port path.

        Returns:
            False if the port is open or the path is empty.
        """
        return self._transport.set_port(port)

    def set_bill_types(self, bill_types: Sequence[int]) -> None:
        """Set the denominations for bill types 1..5."""
        self._engine.set_bill_types(bill_types)

    def ensure_configured(self) -> None:
        """
        Check that the port and bill type table are set.

        Raises:
            NotConfiguredError: If either is missing.
        """
        missing = []
        if not self._transport.port:
            missing.append("port")
        if not self._engine.is_configured:
            missing.append("bill_types")
        if missing:
            raise NotConfiguredError(
                f"{self.name} is not configured: {', '.join(missing)}",
                details={"missing": missing},
            )

    def add_callback(self, event_type: str, callback: EventCallback) -> None:
        """
        Register a callback for an event type.

        Event types (from EventType):
        - BILL_ACCEPTED: Bill stacked (payload AcceptEvent)
        - MODE_CHANGED: Engine mode changed (payload ModeChange)
        - CRITICAL_FAULT: Fault forced a reset (payload FaultEvent)
        - DIAGNOSTIC: Trace line (payload str)
        """
        self._engine.add_callback(event_type, callback)

    def remove_callback(self, event_type: str, callback: EventCallback) -> None:
        self._engine.remove_callback(event_type, callback)

    # =========================================================================
    # Port lifecycle
    # =========================================================================

    async def open_port(self) -> bool:
        """
        Open the serial port.

        Returns:
            True if the port was opened.
        """
        self._engine.reset()
        result = await self._transport.open()
        if result:
            logger.info(f"{self.name} - Open Port {self.current_port}")
        return result

    async def close_port(self) -> bool:
        """
        Close the serial port.

        Returns:
            True if the port was closed.
        """
        result = await self._transport.close()
        if result:
            logger.info(f"{self.name} - Close Port {self.current_port}")
        return result

    # =========================================================================
    # Controller operations
    # =========================================================================

    async def initialize_acceptor(self) -> bool:
        """Reset the acceptor. No-op if the port is closed."""
        return await self._engine.initialize()

    async def enable_acceptor(self) -> bool:
        """Enable bill acceptance. No-op if closed or not configured."""
        return await self._engine.enable()

    async def disable_acceptor(self) -> bool:
        """Disable bill acceptance. No-op if the port is closed."""
        return await self._engine.disable()

    async def check_status(self) -> StatusReport:
        """
        Request the acceptor status.

        Returns:
            Observed status, or NOT_AVAILABLE if the port is closed.

        Raises:
            StatusTimeoutError: If the acceptor never answers.
        """
        return await self._engine.check_status()

    # =========================================================================
    # Publisher bridge
    # =========================================================================

    async def _publish_bill(self, event_type: str, event: AcceptEvent) -> None:
        await self._publisher.bill_accepted(event.amount)

    async def _publish_fault(self, event_type: str, event: FaultEvent) -> None:
        await self._publisher.critical_fault(event.code, event.name)

    async def __aenter__(self) -> 'BillAcceptorDriver':
        """Async context manager entry."""
        await self.open_port()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self.is_open:
            await self.close_port()
