"""
Value Objects for the bill acceptor driver.

Immutable objects handed to callbacks and returned to callers.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from .constants import Mode, StatusCode, get_status_name


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class AcceptEvent:
    """
    A bill was stacked.

    Attributes:
        amount: Denomination from the bill type table, or -1 if the bill
            type could not be mapped.
    """

    amount: int

    @property
    def is_mapped(self) -> bool:
        """Check if the bill type was mapped to a denomination."""
        return self.amount != -1


@dataclass(frozen=True)
class ModeChange:
    """Engine mode transition."""

    previous: Mode
    current: Mode


@dataclass(frozen=True)
class FaultEvent:
    """Critical fault reported by the acceptor."""

    code: int

    @property
    def name(self) -> str:
        return get_status_name(self.code)


# =============================================================================
# Status Report
# =============================================================================


class StatusKind(Enum):
    """Outcome of a status request."""

    OBSERVED = auto()
    NOT_AVAILABLE = auto()


@dataclass(frozen=True)
class StatusReport:
    """
    Result of a status request.

    NOT_AVAILABLE means the port was closed and nothing was sent; it is
    never confused with a byte reported by the acceptor.

    Attributes:
        kind: Whether a status byte was observed.
        raw: The observed byte (None when not available).
    """

    kind: StatusKind
    raw: Optional[int] = None

    @classmethod
    def observed(cls, raw: int) -> "StatusReport":
        return cls(kind=StatusKind.OBSERVED, raw=raw)

    @classmethod
    def not_available(cls) -> "StatusReport":
        return cls(kind=StatusKind.NOT_AVAILABLE)

    @property
    def is_available(self) -> bool:
        return self.kind is StatusKind.OBSERVED

    @property
    def code(self) -> Optional[StatusCode]:
        """Known status code, or None for unknown bytes and NOT_AVAILABLE."""
        if self.raw is None:
            return None
        try:
            return StatusCode(self.raw)
        except ValueError:
            return None

    @property
    def name(self) -> str:
        if not self.is_available:
            return "NOT_AVAILABLE"
        return get_status_name(self.raw)

    def __str__(self) -> str:
        if not self.is_available:
            return self.name
        return f"{self.name} (0x{self.raw:02X})"
