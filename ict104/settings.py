"""
Driver settings.

Provides typed configuration with environment variable overrides.
"""

import os
from dataclasses import dataclass, field
from typing import Final, Optional

import serial

from .constants import (
    HANDSHAKE_DELAY_S,
    STATUS_MAX_RETRIES,
    STATUS_POLL_ATTEMPTS,
    STATUS_POLL_INTERVAL_S,
)


ENV_PREFIX: Final[str] = "ICT104_"


# =============================================================================
# Configuration Classes
# =============================================================================


@dataclass(frozen=True)
class SerialPortSettings:
    """Serial port configuration (ICT-104 line parameters)."""

    port: Optional[str] = None
    baudrate: int = 9600
    bytesize: int = serial.EIGHTBITS
    parity: str = serial.PARITY_EVEN
    stopbits: float = serial.STOPBITS_ONE


@dataclass(frozen=True)
class EngineSettings:
    """Protocol engine timing."""

    handshake_delay: float = HANDSHAKE_DELAY_S
    status_poll_interval: float = STATUS_POLL_INTERVAL_S
    status_poll_attempts: int = STATUS_POLL_ATTEMPTS
    # None retries forever
    status_max_retries: Optional[int] = STATUS_MAX_RETRIES


@dataclass(frozen=True)
class LoggingSettings:
    """Logging destinations."""

    debug: bool = False
    log_file: Optional[str] = None
    loki_url: Optional[str] = None
    app: str = "ict104"


# =============================================================================
# Main Settings
# =============================================================================


@dataclass
class Settings:
    """
    Main driver settings.

    Aggregates all configuration sections.
    """

    serial: SerialPortSettings = field(default_factory=SerialPortSettings)
    engine: EngineSettings = field(default_factory=EngineSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    bill_types: Optional[list[int]] = None

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "Settings":
        """
        Build settings from ``ICT104_*`` environment variables.

        Recognized variables: ICT104_PORT, ICT104_BILL_TYPES
        (comma separated), ICT104_LOG_FILE, ICT104_LOKI_URL, ICT104_DEBUG.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Returns:
            Settings instance.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value or None

        bill_types = get("BILL_TYPES")
        return cls(
            serial=SerialPortSettings(port=get("PORT")),
            logging=LoggingSettings(
                debug=(get("DEBUG") or "").lower() in {"1", "true", "yes"},
                log_file=get("LOG_FILE"),
                loki_url=get("LOKI_URL"),
            ),
            bill_types=parse_bill_types(bill_types) if bill_types else None,
        )


def parse_bill_types(value: str) -> list[int]:
    """
    Parse a comma separated bill type table, e.g. ``"100,500,1000"``.

    Raises:
        ValueError: If an entry is not an integer.
    """
    return [int(part) for part in value.split(",") if part.strip()]


# =============================================================================
# Settings Singleton
# =============================================================================


_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get driver settings singleton.

    Returns:
        Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
