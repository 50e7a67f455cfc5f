"""Core data model — schedules, check outcomes and per-endpoint status.

Every type here is a frozen dataclass. An ``EndpointStatus`` is never
mutated in place: each completed cycle produces a new value that the owning
task swaps in, so readers always hold a consistent snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any


class CheckStatus(str, Enum):
    UNKNOWN = "UNKNOWN"
    OK = "OK"
    NOK = "NOK"


@dataclass(frozen=True)
class Schedule:
    """How often to check an endpoint and how to retry a failing check."""

    interval: float = 600.0  # seconds between cycles
    attempts: int = 3
    retry_delay: float = 3.0  # seconds before the second attempt
    exponential_backoff: bool = False

    @property
    def effective_attempts(self) -> int:
        # zero/negative attempts would never run the checker at all
        return max(self.attempts, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "interval": self.interval,
            "attempts": self.attempts,
            "retry_delay": self.retry_delay,
            "exponential_backoff": self.exponential_backoff,
        }


DEFAULT_SCHEDULE = Schedule()


@dataclass(frozen=True)
class CheckOutcome:
    """Result of a single Checker invocation."""

    status: CheckStatus
    error: str | None = None
    output: bytes | None = None

    @classmethod
    def ok(cls, output: bytes | None = None) -> CheckOutcome:
        return cls(CheckStatus.OK, None, output)

    @classmethod
    def nok(cls, error: str, output: bytes | None = None) -> CheckOutcome:
        return cls(CheckStatus.NOK, error, output)

    def __str__(self) -> str:
        return f"{{status: {self.status.value}, error: {self.error}}}"


@dataclass(frozen=True)
class EndpointStatus:
    """Health of one endpoint as of its most recently completed cycle."""

    latest_outcome: CheckOutcome
    consecutive: int = 1
    latest_ok_at: datetime | None = None
    latest_nok_at: datetime | None = None

    @classmethod
    def initial(cls) -> EndpointStatus:
        return cls(
            latest_outcome=CheckOutcome(CheckStatus.UNKNOWN, "no check performed yet"),
            consecutive=1,
        )

    @property
    def status(self) -> CheckStatus:
        return self.latest_outcome.status

    def advance(self, outcome: CheckOutcome, now: datetime) -> EndpointStatus:
        """Return the status that follows this one after ``outcome``."""
        if outcome.status == self.latest_outcome.status:
            consecutive = self.consecutive + 1
        else:
            consecutive = 1

        latest_ok_at = self.latest_ok_at
        latest_nok_at = self.latest_nok_at
        if outcome.status == CheckStatus.OK:
            latest_ok_at = now
        elif outcome.status == CheckStatus.NOK:
            latest_nok_at = now

        return replace(
            self,
            latest_outcome=outcome,
            consecutive=consecutive,
            latest_ok_at=latest_ok_at,
            latest_nok_at=latest_nok_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.latest_outcome.status.value,
            "error": self.latest_outcome.error,
            "consecutive": self.consecutive,
            "latest_ok": _iso(self.latest_ok_at),
            "latest_nok": _iso(self.latest_nok_at),
        }


@dataclass(frozen=True)
class StatusEvent:
    """Emitted by an endpoint task after every completed cycle."""

    endpoint_name: str
    status: EndpointStatus


def _iso(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts else None
