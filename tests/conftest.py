"""
Pytest configuration for ICT-104 driver tests.

Provides an in-memory transport so the protocol engine can be driven
without a serial port.
"""

import asyncio
from typing import Optional

import pytest

from ict104.engine import ProtocolEngine
from ict104.settings import EngineSettings, Settings


BILL_TYPES = [100, 500, 1000, 5000, 10000]


class FakeTransport:
    """In-memory transport recording every written byte."""

    def __init__(self, is_open: bool = True, port: Optional[str] = "/dev/ttyFAKE") -> None:
        self._open = is_open
        self.port = port
        self.written = bytearray()
        self.available = b''
        self.handler = None

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def sent(self) -> list[int]:
        return list(self.written)

    def set_port(self, port: str) -> bool:
        if self._open or not port:
            return False
        self.port = port
        return True

    def set_data_handler(self, handler) -> None:
        self.handler = handler

    async def open(self) -> bool:
        self._open = True
        return True

    async def close(self) -> bool:
        self._open = False
        return True

    async def write(self, data: bytes) -> None:
        self.written.extend(data)

    async def read_available(self) -> bytes:
        data, self.available = self.available, b''
        return data


async def wait_for_writes(transport: FakeTransport, count: int) -> None:
    """Yield to the loop until the transport has seen `count` bytes."""
    for _ in range(2000):
        if len(transport.written) >= count:
            return
        await asyncio.sleep(0.001)
    raise AssertionError(f"expected {count} written bytes, got {transport.sent}")


@pytest.fixture
def engine_settings():
    """Engine settings without real delays."""
    return EngineSettings(
        handshake_delay=0,
        status_poll_interval=0.01,
        status_poll_attempts=20,
        status_max_retries=1,
    )


@pytest.fixture
def transport():
    """Open in-memory transport."""
    return FakeTransport()


@pytest.fixture
def closed_transport():
    """Closed in-memory transport."""
    return FakeTransport(is_open=False)


@pytest.fixture
def engine(transport, engine_settings):
    """Engine with the bill type table set."""
    engine = ProtocolEngine(transport, engine_settings)
    engine.set_bill_types(BILL_TYPES)
    return engine


@pytest.fixture
def settings(engine_settings):
    """Driver settings that ignore the environment."""
    return Settings(engine=engine_settings)
