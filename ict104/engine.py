"""
ICT-104 Protocol Engine.

Implements the state machine that drives an ICT-104 bill acceptor
through its accept, reset and status lifecycle.

The same byte means different things in different modes, so inbound
chunks are accumulated in a pending buffer and interpreted against the
current mode:

    IDLE         -> ACCEPTING  on BILL_VALIDATED
    ACCEPTING    -> IDLE       on STACKING (emits BILL_ACCEPTED)
    any          -> RESET      on a critical fault (except CHECK_STATUS)
    RESET        -> IDLE       on a completed reset/power-on handshake
    CHECK_STATUS -> IDLE       on any status byte

All mutations are serialized by one asyncio.Lock, so the transport's
data notifications and controller calls never interleave.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

from .constants import (
    BILL_TYPE_COUNT,
    BILL_TYPE_INDEX,
    MAX_PENDING_BYTES,
    POWER_SUPPLY_ON,
    Command,
    EventType,
    Mode,
    Recognition,
    describe_bytes,
    get_bill_type_index,
    get_status_name,
    is_critical_fault,
)
from .exceptions import StatusTimeoutError
from .settings import EngineSettings
from .transport import Transport
from .value_objects import AcceptEvent, FaultEvent, ModeChange, StatusReport


logger = logging.getLogger(__name__)


# Type alias for event callbacks
EventCallback = Callable[[str, Any], Awaitable[None]]


class ProtocolEngine:
    """
    State machine for an ICT-104 bill acceptor.

    One engine per physical connection. The engine consumes inbound
    chunks through feed_bytes() and writes command bytes through the
    transport it was given.

    Attributes:
        mode: Current operating mode.
        bill_types: Denominations for BILL_TYPE_1..BILL_TYPE_5.
        pending: Copy of the unhandled inbound bytes.
    """

    def __init__(
        self,
        transport: Transport,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        """
        Initialize engine.

        Args:
            transport: Byte transport used for writes and secondary reads.
            settings: Timing settings (defaults to protocol values).
        """
        self._transport = transport
        self._settings = settings or EngineSettings()
        self._mode = Mode.IDLE
        self._buffer = bytearray()
        self._bill_types: Optional[list[int]] = None
        self._bill_type: Optional[int] = None
        self._pending_critical_reset = False
        self._saw_one_power_signal = False
        self._observed_status: Optional[int] = None
        self._lock = asyncio.Lock()
        self._callbacks: dict[str, list[EventCallback]] = {}

    @property
    def mode(self) -> Mode:
        """Get current mode."""
        return self._mode

    @property
    def pending(self) -> bytes:
        """Get unhandled inbound bytes."""
        return bytes(self._buffer)

    @property
    def bill_types(self) -> Optional[list[int]]:
        """Get bill type table."""
        return list(self._bill_types) if self._bill_types is not None else None

    @property
    def bill_type(self) -> Optional[int]:
        """Get bill type byte recorded for the bill being accepted."""
        return self._bill_type

    @property
    def pending_critical_reset(self) -> bool:
        return self._pending_critical_reset

    @property
    def saw_one_power_signal(self) -> bool:
        return self._saw_one_power_signal

    @property
    def is_configured(self) -> bool:
        """Check if the bill type table has been set."""
        return self._bill_types is not None

    # =========================================================================
    # Callbacks
    # =========================================================================

    def add_callback(
        self,
        event_type: str,
        callback: EventCallback,
    ) -> None:
        """
        Register a callback for an event type.

        Callbacks run while the engine lock is held and must not call
        back into engine operations.

        Args:
            event_type: Event type (from EventType).
            callback: Async callback function(event_type, payload).
        """
        if event_type not in self._callbacks:
            self._callbacks[event_type] = []
        self._callbacks[event_type].append(callback)

    def remove_callback(
        self,
        event_type: str,
        callback: EventCallback,
    ) -> None:
        """
        Remove a callback for an event type.

        Args:
            event_type: Event type.
            callback: Callback to remove.
        """
        if event_type in self._callbacks:
            try:
                self._callbacks[event_type].remove(callback)
            except ValueError:
                pass

    async def _emit_event(self, event_type: str, payload: Any) -> None:
        """Emit an event to all registered callbacks."""
        for callback in self._callbacks.get(event_type, []):
            try:
                await callback(event_type, payload)
            except Exception as e:
                logger.error(f"Callback error for {event_type}: {e}")

    async def _diagnostic(self, text: str) -> None:
        logger.info(text)
        await self._emit_event(EventType.DIAGNOSTIC, text)

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_bill_types(self, bill_types: Sequence[int]) -> None:
        """
        Set the denominations for BILL_TYPE_1..BILL_TYPE_5.

        Args:
            bill_types: Denominations in bill type order.
        """
        if len(bill_types) != BILL_TYPE_COUNT:
            logger.warning(
                f"Bill type table has {len(bill_types)} entries, "
                f"expected {BILL_TYPE_COUNT}"
            )
        self._bill_types = [int(value) for value in bill_types]
        logger.info(f"Bill types set: {self._bill_types}")

    # =========================================================================
    # Controller operations
    # =========================================================================

    async def initialize(self) -> bool:
        """
        Reset the acceptor.

        Returns:
            False if the port is closed.
        """
        if not self._transport.is_open:
            return False

        async with self._lock:
            await self._change_mode(Mode.RESET)
            await self._send(Command.RESET)
        return True

    async def enable(self) -> bool:
        """
        Enable bill acceptance.

        Returns:
            False if the port is closed or the bill type table is unset.
        """
        async with self._lock:
            return await self._enable()

    async def disable(self) -> bool:
        """
        Disable bill acceptance. Does not change mode.

        Returns:
            False if the port is closed.
        """
        async with self._lock:
            return await self._disable()

    async def check_status(self) -> StatusReport:
        """
        Ask the acceptor for its status and wait for the reply.

        The reply is picked up by the CHECK_STATUS branch of feed_bytes().
        An unanswered request is re-issued up to status_max_retries times
        (forever when it is None).

        Returns:
            Observed status, or NOT_AVAILABLE if the port is closed.

        Raises:
            StatusTimeoutError: If every request went unanswered.
        """
        if not self._transport.is_open:
            return StatusReport.not_available()

        settings = self._settings
        requests = 0
        while True:
            requests += 1
            async with self._lock:
                self._observed_status = None
                # The status slot must only ever hold the reply
                if self._buffer:
                    logger.debug(f"Discarding before status request: {describe_bytes(self._buffer)}")
                    self._buffer.clear()
                await self._change_mode(Mode.CHECK_STATUS)
                await self._send(Command.CHECK_STATUS)

            for _ in range(settings.status_poll_attempts):
                if self._observed_status is not None:
                    break
                await asyncio.sleep(settings.status_poll_interval)

            async with self._lock:
                observed = self._observed_status
                self._observed_status = None
                if observed is not None:
                    return StatusReport.observed(observed)

                logger.warning(f"Status request #{requests} timed out")
                retries = settings.status_max_retries
                if retries is not None and requests > retries:
                    await self._change_mode(Mode.IDLE)
                    raise StatusTimeoutError(
                        f"No status reply after {requests} requests",
                        attempts=requests,
                    )

    # =========================================================================
    # Inbound bytes
    # =========================================================================

    async def feed_bytes(self, chunk: bytes) -> None:
        """
        Append an inbound chunk and interpret the pending buffer.

        Critical faults are detected on the first byte of the new chunk,
        so stray bytes left pending by earlier chunks cannot mask them.

        Args:
            chunk: Bytes delivered by the transport.
        """
        async with self._lock:
            if not chunk and not self._buffer:
                chunk = await self._transport.read_available()
                if not chunk:
                    logger.debug("Empty chunk, nothing to interpret")
                    return

            self._buffer.extend(chunk)
            if len(self._buffer) > MAX_PENDING_BYTES:
                dropped = len(self._buffer) - MAX_PENDING_BYTES
                logger.warning(f"Pending buffer overflow, dropping {dropped} bytes")
                del self._buffer[:dropped]

            data = bytes(self._buffer)
            await self._interpret(data, chunk[0] if chunk else data[0])

    async def _interpret(self, data: bytes, first: int) -> None:
        """
        Run one interpretation pass over a buffer snapshot.

        Args:
            data: Snapshot of the pending buffer.
            first: First byte of the chunk that triggered this pass.
        """
        await self._emit_event(EventType.DIAGNOSTIC, f"RX: {describe_bytes(data)}")

        # A fault frame preempts whatever is left over from earlier chunks.
        # Once a fault reset is pending, any frame completes its handshake.
        if (
            self._mode is not Mode.CHECK_STATUS
            and not (self._mode is Mode.RESET and self._pending_critical_reset)
            and is_critical_fault(first)
        ):
            await self._handle_critical_fault(first)
            return

        if self._mode is Mode.IDLE:
            await self._handle_idle(data)
        elif self._mode is Mode.ACCEPTING:
            await self._handle_accepting(data)
        elif self._mode is Mode.RESET:
            await self._handle_reset(data)

        if self._mode is Mode.CHECK_STATUS:
            self._observed_status = data[0]
            self._buffer.clear()
            logger.info(f"Status: {get_status_name(data[0])}")
            await self._change_mode(Mode.IDLE)

    async def _handle_critical_fault(self, code: int) -> None:
        logger.error(f"Critical fault: {get_status_name(code)} (0x{code:02X})")
        await self._change_mode(Mode.RESET)
        self._pending_critical_reset = True
        self._buffer.clear()
        await self._emit_event(EventType.CRITICAL_FAULT, FaultEvent(code=code))

    async def _handle_idle(self, data: bytes) -> None:
        if Recognition.BILL_VALIDATED not in data:
            return

        index = data.index(Recognition.BILL_VALIDATED)
        if index + 1 < len(data):
            await self._send(Command.HOLD)
            self._bill_type = data[index + 1]
            await self._send(Command.ACCEPT)
        else:
            logger.warning("Bill validated without bill type")
            self._bill_type = None
        await self._change_mode(Mode.ACCEPTING)
        self._buffer.clear()

    async def _handle_accepting(self, data: bytes) -> None:
        if Recognition.STACKING in data:
            self._buffer.clear()
            await self._accept_bill()
            await self._change_mode(Mode.IDLE)
        elif any(byte in BILL_TYPE_INDEX for byte in data):
            await self._send(Command.HOLD)
            self._bill_type = data[0]
            self._buffer.clear()
            await self._send(Command.ACCEPT)

    async def _handle_reset(self, data: bytes) -> None:
        if self._pending_critical_reset:
            await self._send(Command.ACCEPT)
            self._buffer.clear()
            await self._change_mode(Mode.IDLE)
            await asyncio.sleep(self._settings.handshake_delay)
            await self._enable()
            self._pending_critical_reset = False
            return

        signals = POWER_SUPPLY_ON.intersection(data)
        if len(signals) == len(POWER_SUPPLY_ON):
            await self._send(Command.ACCEPT)
            self._buffer.clear()
            await self._finish_power_on()
        elif signals:
            await self._send(Command.ACCEPT)
            self._buffer.clear()
            if not self._saw_one_power_signal:
                await self._diagnostic("Only one power-on signal, waiting for another")
                self._saw_one_power_signal = True
            else:
                await self._diagnostic("Power-on signal again, treating as complete")
                await self._finish_power_on()

    async def _finish_power_on(self) -> None:
        await self._change_mode(Mode.IDLE)
        await asyncio.sleep(self._settings.handshake_delay)
        await self._disable()
        self._saw_one_power_signal = False

    async def _accept_bill(self) -> None:
        """Map the recorded bill type and emit BILL_ACCEPTED."""
        bill_type = self._bill_type
        self._bill_type = None
        index = get_bill_type_index(bill_type)

        amount = -1
        if index is None:
            shown = f"0x{bill_type:02X}" if bill_type is not None else "none"
            logger.error(f"Unknown bill type: {shown}")
        elif self._bill_types is None:
            logger.error("Bill accepted but bill types are not set")
        elif index >= len(self._bill_types):
            logger.error(f"No denomination for bill type {index + 1}")
        else:
            amount = self._bill_types[index]

        logger.info(f"Bill accepted: amount={amount}")
        await self._emit_event(EventType.BILL_ACCEPTED, AcceptEvent(amount=amount))

    # =========================================================================
    # Helpers (caller holds the lock)
    # =========================================================================

    async def _enable(self) -> bool:
        if not self._transport.is_open:
            return False
        if self._bill_types is None:
            logger.warning("Enable skipped: bill types are not set")
            return False
        await self._send(Command.ENABLE)
        return True

    async def _disable(self) -> bool:
        if not self._transport.is_open:
            return False
        await self._send(Command.DISABLE)
        return True

    async def _send(self, command: Command) -> None:
        await self._transport.write(bytes([command]))
        await self._diagnostic(f"Sent: {describe_bytes([command], outbound=True)}")

    async def _change_mode(self, mode: Mode) -> None:
        previous = self._mode
        self._mode = mode
        if previous is not mode:
            logger.info(f"Changed mode from {previous.name} to {mode.name}")
            await self._emit_event(
                EventType.MODE_CHANGED,
                ModeChange(previous=previous, current=mode),
            )

    def reset(self) -> None:
        """Return to the initial state. The bill type table is kept."""
        self._mode = Mode.IDLE
        self._buffer.clear()
        self._bill_type = None
        self._pending_critical_reset = False
        self._saw_one_power_signal = False
        self._observed_status = None
