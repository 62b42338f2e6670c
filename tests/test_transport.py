"""
Tests for the serial transport with a patched pyserial-asyncio.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import serial

from ict104.settings import SerialPortSettings
from ict104.transport import SerialTransport


OPEN_CONNECTION = "ict104.transport.serial_asyncio.open_serial_connection"


def make_writer() -> MagicMock:
    writer = MagicMock()
    writer.is_closing.return_value = False
    writer.drain = AsyncMock()
    writer.wait_closed = AsyncMock()
    return writer


async def wait_until(predicate) -> None:
    for _ in range(500):
        if predicate():
            return
        await asyncio.sleep(0.001)
    raise AssertionError("condition not reached")


class TestSettings:
    """Tests for the ICT-104 line parameters."""

    def test_defaults(self):
        settings = SerialPortSettings()
        assert settings.baudrate == 9600
        assert settings.bytesize == serial.EIGHTBITS
        assert settings.parity == serial.PARITY_EVEN
        assert settings.stopbits == serial.STOPBITS_ONE


class TestSerialTransport:
    """Tests for SerialTransport."""

    def test_port_from_settings(self):
        transport = SerialTransport(settings=SerialPortSettings(port="/dev/ttyS0"))
        assert transport.port == "/dev/ttyS0"
        assert transport.is_open is False

    def test_set_port(self):
        transport = SerialTransport()
        assert transport.set_port("/dev/ttyUSB0") is True
        assert transport.port == "/dev/ttyUSB0"
        assert transport.set_port("") is False

    @pytest.mark.asyncio
    async def test_open_without_port(self):
        transport = SerialTransport()
        assert await transport.open() is False

    @pytest.mark.asyncio
    async def test_open_failure(self):
        transport = SerialTransport(port="/dev/missing")
        failing = AsyncMock(side_effect=serial.SerialException("no such port"))

        with patch(OPEN_CONNECTION, failing):
            assert await transport.open() is False

        assert transport.is_open is False

    @pytest.mark.asyncio
    async def test_open_passes_line_parameters(self):
        reader = asyncio.StreamReader()
        opener = AsyncMock(return_value=(reader, make_writer()))
        transport = SerialTransport(port="/dev/ttyUSB0")

        with patch(OPEN_CONNECTION, opener):
            assert await transport.open() is True

        opener.assert_awaited_once_with(
            url="/dev/ttyUSB0",
            baudrate=9600,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_EVEN,
            stopbits=serial.STOPBITS_ONE,
        )
        assert transport.is_open is True
        assert transport.set_port("/dev/ttyUSB1") is False
        await transport.close()

    @pytest.mark.asyncio
    async def test_inbound_chunks_reach_handler(self):
        reader = asyncio.StreamReader()
        handler = AsyncMock()
        transport = SerialTransport(port="/dev/ttyUSB0")
        transport.set_data_handler(handler)

        with patch(OPEN_CONNECTION, AsyncMock(return_value=(reader, make_writer()))):
            await transport.open()

        reader.feed_data(bytes([0x81, 0x42]))
        await wait_until(lambda: handler.await_count == 1)

        handler.assert_awaited_once_with(bytes([0x81, 0x42]))
        await transport.close()

    @pytest.mark.asyncio
    async def test_handler_error_keeps_reading(self):
        reader = asyncio.StreamReader()
        handler = AsyncMock(side_effect=[RuntimeError("boom"), None])
        transport = SerialTransport(port="/dev/ttyUSB0")
        transport.set_data_handler(handler)

        with patch(OPEN_CONNECTION, AsyncMock(return_value=(reader, make_writer()))):
            await transport.open()

        reader.feed_data(b'\x10')
        await wait_until(lambda: handler.await_count == 1)
        reader.feed_data(b'\x3e')
        await wait_until(lambda: handler.await_count == 2)

        await transport.close()

    @pytest.mark.asyncio
    async def test_write(self):
        writer = make_writer()
        transport = SerialTransport(port="/dev/ttyUSB0")

        with patch(OPEN_CONNECTION, AsyncMock(return_value=(asyncio.StreamReader(), writer))):
            await transport.open()

        await transport.write(b'\x3e')

        writer.write.assert_called_once_with(b'\x3e')
        writer.drain.assert_awaited_once()
        await transport.close()

    @pytest.mark.asyncio
    async def test_write_closed_is_dropped(self):
        transport = SerialTransport(port="/dev/ttyUSB0")
        await transport.write(b'\x3e')
        assert transport.is_open is False

    @pytest.mark.asyncio
    async def test_read_available_while_reader_waits(self):
        transport = SerialTransport(port="/dev/ttyUSB0")

        with patch(OPEN_CONNECTION, AsyncMock(return_value=(asyncio.StreamReader(), make_writer()))):
            await transport.open()
        await wait_until(lambda: transport._reading)

        assert await transport.read_available() == b''
        await transport.close()

    @pytest.mark.asyncio
    async def test_read_available_closed(self):
        transport = SerialTransport(port="/dev/ttyUSB0")
        assert await transport.read_available() == b''

    @pytest.mark.asyncio
    async def test_close(self):
        writer = make_writer()
        transport = SerialTransport(port="/dev/ttyUSB0")

        with patch(OPEN_CONNECTION, AsyncMock(return_value=(asyncio.StreamReader(), writer))):
            await transport.open()

        assert await transport.close() is True
        writer.close.assert_called_once()
        writer.wait_closed.assert_awaited_once()
        assert transport.is_open is False

    @pytest.mark.asyncio
    async def test_close_when_never_opened(self):
        transport = SerialTransport(port="/dev/ttyUSB0")
        assert await transport.close() is True
