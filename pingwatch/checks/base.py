"""Checker contract — a one-shot health check of a single endpoint.

A checker binds and validates all of its protocol parameters (URL,
credentials, expected response, timeout) at construction time. ``check()``
takes no arguments, enforces its own timeout, and must not keep connections
open between calls. It is only ever called by its owning endpoint task, one
call at a time, from a worker thread.
"""

from __future__ import annotations

import abc
import logging
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError

from pingwatch.engine.models import CheckOutcome

logger = logging.getLogger(__name__)


class CheckerError(ValueError):
    """Raised when a checker cannot be constructed from its check payload."""


class CheckPayload(BaseModel):
    """Base for per-protocol check payload models."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class Checker(abc.ABC):
    """Abstract one-shot health check."""

    type_name: ClassVar[str] = ""
    payload_model: ClassVar[type[CheckPayload]]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Checker:
        """Validate a raw ``check`` payload and build a bound checker."""
        try:
            parsed = cls.payload_model.model_validate(payload)
        except ValidationError as e:
            raise CheckerError(f"{cls.type_name} checker: invalid check: {_first_error(e)}") from e
        return cls(parsed)

    @abc.abstractmethod
    def check(self) -> CheckOutcome:
        """Check the endpoint once and report OK or NOK."""

    def describe(self) -> str:
        return self.type_name


# ── Registry ─────────────────────────────────────────────────────────────────

CHECKERS: dict[str, type[Checker]] = {}


def register_checker(cls: type[Checker]) -> type[Checker]:
    """Class decorator adding a checker implementation under its ``type_name``."""
    if not cls.type_name:
        raise TypeError(f"{cls.__name__} has no type_name")
    CHECKERS[cls.type_name] = cls
    return cls


def build_checker(check_type: str, payload: dict[str, Any]) -> Checker:
    """Construct the checker registered for ``check_type``."""
    cls = CHECKERS.get(check_type)
    if cls is None:
        raise CheckerError(f"unknown checker type: {check_type}")
    logger.debug("instantiating %s checker", check_type)
    return cls.from_payload(payload)


def _first_error(err: ValidationError) -> str:
    e = err.errors()[0]
    loc = ".".join(str(p) for p in e["loc"])
    return f"{loc}: {e['msg']}" if loc else e["msg"]
