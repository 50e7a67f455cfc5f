"""Alert sink contract and the alert payload handed to sinks."""

from __future__ import annotations

import abc
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pingwatch.engine.models import CheckStatus, StatusEvent


@dataclass(frozen=True)
class AlertRecord:
    """What a sink is told about an endpoint. Built fresh for every dispatch."""

    endpoint_name: str
    ok: bool
    error: str
    output_url: str
    consecutive: int
    latest_ok_at: datetime | None = None
    latest_nok_at: datetime | None = None

    @classmethod
    def from_event(cls, event: StatusEvent, output_url: str) -> AlertRecord:
        status = event.status
        ok = status.status == CheckStatus.OK
        return cls(
            endpoint_name=event.endpoint_name,
            ok=ok,
            error="" if ok else (status.latest_outcome.error or ""),
            output_url=output_url,
            consecutive=status.consecutive,
            latest_ok_at=status.latest_ok_at,
            latest_nok_at=status.latest_nok_at,
        )

    @property
    def status_text(self) -> str:
        return "OK" if self.ok else "NOT OK"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.endpoint_name,
            "ok": self.ok,
            "error": self.error,
            "output_url": self.output_url,
            "consecutive": self.consecutive,
            "latest_ok": self.latest_ok_at.isoformat() if self.latest_ok_at else None,
            "latest_nok": self.latest_nok_at.isoformat() if self.latest_nok_at else None,
        }

    def to_json(self, indent: int | None = 4) -> str:
        return json.dumps(self.to_dict(), indent=indent)


class AlertSink(abc.ABC):
    """One way of telling a human (or a system) about an endpoint.

    ``send`` reports success as a bool; it may also raise. Either way the
    dispatcher only logs failures and never retries. Sinks must not assume
    any ordering relative to other sinks or other alerts.
    """

    name: str = "sink"

    @abc.abstractmethod
    async def send(self, record: AlertRecord) -> bool:
        """Deliver ``record``; return True on success."""

    async def close(self) -> None:
        """Release any resources held by the sink."""
