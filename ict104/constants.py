"""
ICT-104 Protocol Constants and Enumerations.

Based on the ICT-104 Protocol for RS232 document.
Every command and reply is a single byte; all of them are defined
as IntEnum for type safety.
"""

from enum import Enum, IntEnum, auto
from typing import Final, Iterable


# Timing constants
HANDSHAKE_DELAY_S: Final[float] = 0.1  # Pause before ENABLE/DISABLE after a reset handshake
STATUS_POLL_INTERVAL_S: Final[float] = 0.1  # Status slot poll interval
STATUS_POLL_ATTEMPTS: Final[int] = 10  # Polls per status request
STATUS_MAX_RETRIES: Final[int] = 3  # Status requests before giving up

# Buffer constants
MAX_PENDING_BYTES: Final[int] = 64  # Unhandled bytes kept before trimming
READ_CHUNK_SIZE: Final[int] = 64  # Bytes requested per reader call
SECONDARY_READ_TIMEOUT_S: Final[float] = 0.05  # Best-effort read when a chunk was empty

BILL_TYPE_COUNT: Final[int] = 5


class Mode(Enum):
    """Engine operating mode."""
    IDLE = auto()
    RESET = auto()
    CHECK_STATUS = auto()
    ACCEPTING = auto()


class Command(IntEnum):
    """
    Commands sent from controller to bill acceptor.

    STACK is the same byte as ACCEPT: accepting a held bill stacks it.
    """
    ACCEPT = 0x02
    STACK = 0x02
    CHECK_STATUS = 0x0C
    HOLD = 0x18
    RESET = 0x30
    ENABLE = 0x3E
    DISABLE = 0x5E


class StatusCode(IntEnum):
    """
    Status bytes reported by the bill acceptor.

    Replies to CHECK_STATUS and unsolicited fault reports.
    """
    # Fault states
    MOTOR_FAILURE = 0x20
    CHECKSUM_ERROR = 0x21
    BILL_JAM = 0x22
    BILL_REMOVE = 0x23
    STACKER_OPEN = 0x24
    SENSOR_PROBLEM = 0x25
    BILL_FISH = 0x27
    STACKER_PROBLEM = 0x28
    BILL_REJECT = 0x29
    INVALID_COMMAND = 0x2A
    ERROR_STATUS_EXCLUSION = 0x2F

    # Normal states
    ENABLED = 0x3E
    INHIBITED = 0x5E


class Recognition(IntEnum):
    """Bytes recognized in the inbound stream besides status codes."""
    STACKING = 0x10
    BILL_TYPE_1 = 0x40
    BILL_TYPE_2 = 0x41
    BILL_TYPE_3 = 0x42
    BILL_TYPE_4 = 0x43
    BILL_TYPE_5 = 0x44
    POWER_SUPPLY_ON_1 = 0x80
    BILL_VALIDATED = 0x81
    POWER_SUPPLY_ON_2 = 0x8F


class EventType(str):
    """
    Events emitted by the engine.

    Used for callback-based event system.
    """
    BILL_ACCEPTED = "BILL_ACCEPTED"
    MODE_CHANGED = "MODE_CHANGED"
    CRITICAL_FAULT = "CRITICAL_FAULT"
    DIAGNOSTIC = "DIAGNOSTIC"


# Faults that force a reset handshake
CRITICAL_FAULTS: Final[frozenset[int]] = frozenset({
    StatusCode.MOTOR_FAILURE,
    StatusCode.CHECKSUM_ERROR,
    StatusCode.BILL_JAM,
    StatusCode.BILL_REMOVE,
    StatusCode.STACKER_OPEN,
    StatusCode.SENSOR_PROBLEM,
    StatusCode.BILL_FISH,
    StatusCode.STACKER_PROBLEM,
    StatusCode.BILL_REJECT,
    StatusCode.INVALID_COMMAND,
    StatusCode.ERROR_STATUS_EXCLUSION,
})

# Bill type byte -> index into the bill type table
BILL_TYPE_INDEX: Final[dict[int, int]] = {
    Recognition.BILL_TYPE_1: 0,
    Recognition.BILL_TYPE_2: 1,
    Recognition.BILL_TYPE_3: 2,
    Recognition.BILL_TYPE_4: 3,
    Recognition.BILL_TYPE_5: 4,
}

POWER_SUPPLY_ON: Final[frozenset[int]] = frozenset({
    Recognition.POWER_SUPPLY_ON_1,
    Recognition.POWER_SUPPLY_ON_2,
})


# Name mappings for logging
COMMAND_NAMES: dict[int, str] = {
    command.value: command.name for command in Command
}
STATUS_NAMES: dict[int, str] = {
    status.value: status.name for status in StatusCode
}
RECOGNITION_NAMES: dict[int, str] = {
    byte.value: byte.name for byte in Recognition
}


def is_critical_fault(value: int) -> bool:
    """Check whether a byte is a fault that forces a reset."""
    return value in CRITICAL_FAULTS


def get_status_name(value: int | None) -> str:
    """Get human-readable status name from status byte."""
    if value is None:
        return "UNKNOWN"
    return STATUS_NAMES.get(value, f"UNKNOWN(0x{value:02X})")


def get_bill_type_index(value: int | None) -> int | None:
    """Get bill type table index (0..4) for a bill type byte."""
    if value is None:
        return None
    return BILL_TYPE_INDEX.get(value)


def describe_byte(value: int, outbound: bool = False) -> str:
    """
    Format a byte for TX/RX log lines, e.g. ``0x3E (ENABLE)``.

    Outbound bytes are named after commands first, inbound bytes after
    recognition bytes and status codes.
    """
    if outbound:
        name = COMMAND_NAMES.get(value)
    else:
        name = RECOGNITION_NAMES.get(value) or STATUS_NAMES.get(value)
    if name is None:
        return f"0x{value:02X}"
    return f"0x{value:02X} ({name})"


def describe_bytes(data: Iterable[int], outbound: bool = False) -> str:
    """Format a byte sequence for TX/RX log lines."""
    return ' '.join(describe_byte(b, outbound) for b in data)
