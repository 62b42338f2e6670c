"""
ICT-104 Transport Layer.

Owns the serial connection: opening and closing the port with the
ICT-104 line parameters (9600 baud, 8 data bits, even parity, one stop
bit), raw byte writes and a reader task that hands every inbound chunk
to a data handler.

ICT-104 frames are single bytes, so there is no packet framing here.
Interpretation belongs to the protocol engine.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

import serial_asyncio

from .constants import READ_CHUNK_SIZE, SECONDARY_READ_TIMEOUT_S, describe_bytes
from .settings import SerialPortSettings


logger = logging.getLogger(__name__)


# Type alias for the "data available" notification
DataHandler = Callable[[bytes], Awaitable[None]]


class Transport(Protocol):
    """Byte transport consumed by the protocol engine."""

    @property
    def is_open(self) -> bool:
        ...

    async def write(self, data: bytes) -> None:
        ...

    async def read_available(self) -> bytes:
        ...


class SerialTransport:
    """
    Serial transport for ICT-104 bill acceptors.

    Handles async serial I/O through pyserial-asyncio.

    Attributes:
        port: Serial port path.
        settings: Line parameters.
    """

    def __init__(
        self,
        port: Optional[str] = None,
        settings: Optional[SerialPortSettings] = None,
    ) -> None:
        """
        Initialize transport.

        Args:
            port: Serial port path (e.g., '/dev/ttyUSB0').
            settings: Line parameters (defaults to ICT-104 values).
        """
        self._settings = settings or SerialPortSettings()
        self._port = port or self._settings.port
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._read_task: Optional[asyncio.Task] = None
        self._data_handler: Optional[DataHandler] = None
        self._reading = False
        self._lock = asyncio.Lock()

    @property
    def port(self) -> Optional[str]:
        """Get serial port path."""
        return self._port

    @property
    def settings(self) -> SerialPortSettings:
        """Get line parameters."""
        return self._settings

    @property
    def is_open(self) -> bool:
        """Check if the port is open."""
        return self._writer is not None and not self._writer.is_closing()

    def set_port(self, port: str) -> bool:
        """
        Set the serial port path.

        Args:
            port: Serial port path.

        Returns:
            False if the port is currently open or the path is empty.
        """
        if self.is_open:
            logger.error(f"Cannot change port while {self._port} is open")
            return False
        if not port:
            logger.error("Empty port name")
            return False
        self._port = port
        logger.info(f"Port set to {port}")
        return True

    def set_data_handler(self, handler: Optional[DataHandler]) -> None:
        """
        Register the coroutine that receives inbound chunks.

        Args:
            handler: Async callable taking the received bytes.
        """
        self._data_handler = handler

    async def open(self) -> bool:
        """
        Open the serial port and start the reader task.

        Returns:
            True if the port was opened.
        """
        if self.is_open:
            logger.warning("Already open")
            return True

        if not self._port:
            logger.error("Port not set")
            return False

        try:
            self._reader, self._writer = await serial_asyncio.open_serial_connection(
                url=self._port,
                baudrate=self._settings.baudrate,
                bytesize=self._settings.bytesize,
                parity=self._settings.parity,
                stopbits=self._settings.stopbits,
            )
        except Exception as e:
            logger.error(f"Failed to open {self._port}: {e}")
            self._reader = None
            self._writer = None
            return False

        self._read_task = asyncio.create_task(self._read_loop())
        logger.info(f"Opened {self._port} at {self._settings.baudrate} baud")
        return True

    async def close(self) -> bool:
        """
        Stop the reader task and close the port.

        Returns:
            True if the port was closed cleanly.
        """
        if self._read_task:
            self._read_task.cancel()
            try:
                await self._read_task
            except asyncio.CancelledError:
                pass
            self._read_task = None

        if self._writer is None:
            return True

        writer = self._writer
        self._writer = None
        self._reader = None
        try:
            writer.close()
            await writer.wait_closed()
        except Exception as e:
            logger.error(f"Failed to close {self._port}: {e}")
            return False

        logger.info(f"Closed {self._port}")
        return True

    async def write(self, data: bytes) -> None:
        """
        Write raw bytes to the acceptor.

        Args:
            data: Bytes to send.
        """
        if self._writer is None:
            logger.warning(f"Write on closed port dropped: {data.hex(' ')}")
            return

        logger.debug(f"TX: {describe_bytes(data, outbound=True)}")
        async with self._lock:
            self._writer.write(data)
            await self._writer.drain()

    async def read_available(self) -> bytes:
        """
        Best-effort read of whatever is already buffered.

        Returns:
            Buffered bytes, or b'' if nothing arrived in time.
        """
        # The reader task owns the stream while it waits for data
        if self._reader is None or self._reading:
            return b''
        try:
            return await asyncio.wait_for(
                self._reader.read(READ_CHUNK_SIZE),
                timeout=SECONDARY_READ_TIMEOUT_S,
            )
        except asyncio.TimeoutError:
            return b''

    async def _read_loop(self) -> None:
        """Deliver inbound chunks to the data handler until EOF."""
        logger.debug("Reader started")
        try:
            while self._reader is not None:
                self._reading = True
                try:
                    chunk = await self._reader.read(READ_CHUNK_SIZE)
                finally:
                    self._reading = False
                if not chunk:
                    logger.warning("Serial port reported EOF")
                    break

                logger.debug(f"RX: {describe_bytes(chunk)}")
                if self._data_handler is None:
                    continue
                try:
                    await self._data_handler(chunk)
                except Exception as e:
                    logger.error(f"Data handler error: {e}")
        except asyncio.CancelledError:
            logger.debug("Reader cancelled")
            raise
        except Exception as e:
            logger.error(f"Read error: {e}")
        finally:
            logger.debug("Reader stopped")
