"""Endpoint registry — loads the engine config file into typed models.

The file is YAML (so plain JSON works too)::

    default_schedule:
      interval: 10m
      retries: {attempts: 3, delay: 3s, exponential_backoff: false}
    endpoints:
      - name: api-prod
        type: http
        check: {url: "https://api.example.com/health", expect: {status_code: 200}}
    alerter:
      reminder_delay: 1h
      email: {smtp_host: smtp.example.com, smtp_port: 587, from: ..., to: [...]}

Only generic structure is validated here. The ``check`` payload of each
endpoint is validated by the checker implementation for its ``type``.
"""

from __future__ import annotations

import logging
import re
from email.utils import parseaddr
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from pingwatch.endpoints.durations import Duration
from pingwatch.engine.models import DEFAULT_SCHEDULE, Schedule

logger = logging.getLogger(__name__)

_IPV4 = re.compile(r"^[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}$")
_HOSTNAME = re.compile(
    r"^(([a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9\-]*[a-zA-Z0-9])\.)*"
    r"([A-Za-z0-9]|[A-Za-z0-9][A-Za-z0-9\-]*[A-Za-z0-9])$"
)
# must be usable as a URL path segment
_ENDPOINT_NAME = re.compile(r"^[a-zA-Z0-9_\-.]+$")
_LOGIN_NAME = re.compile(r"^[a-z_][a-z0-9_.@-]*$")


class ConfigError(ValueError):
    """Raised when the engine config file is missing, unparsable or invalid."""


# ── Validators ───────────────────────────────────────────────────────────────


def valid_host(host: str) -> bool:
    return bool(_IPV4.match(host) or _HOSTNAME.match(host))


def valid_port(port: int) -> bool:
    return 0 < port < 65535


def valid_endpoint_name(name: str) -> bool:
    return bool(_ENDPOINT_NAME.match(name))


def valid_login_name(name: str) -> bool:
    return bool(_LOGIN_NAME.match(name))


def _check_host(value: str) -> str:
    if not valid_host(value):
        raise ValueError(f"illegal host: '{value}'")
    return value


def _check_port(value: int) -> int:
    if not valid_port(value):
        raise ValueError(f"illegal port: {value}")
    return value


def _check_address(value: str) -> str:
    _, addr = parseaddr(value)
    if not addr or "@" not in addr:
        raise ValueError(f"illegal email address: '{value}'")
    return value


# ── Models ───────────────────────────────────────────────────────────────────


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class RetriesDef(_Model):
    attempts: int = 3
    delay: Duration = 3.0
    exponential_backoff: bool = Field(default=False, alias="exponentialBackoff")

    @field_validator("attempts")
    @classmethod
    def check_attempts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("attempts must be a positive number")
        return v


class ScheduleDef(_Model):
    interval: Duration
    retries: RetriesDef

    def to_schedule(self) -> Schedule:
        return Schedule(
            interval=self.interval,
            attempts=self.retries.attempts,
            retry_delay=self.retries.delay,
            exponential_backoff=self.retries.exponential_backoff,
        )


class EndpointDef(_Model):
    """One monitored endpoint. ``check`` is interpreted by the checker for ``type``."""

    name: str
    type: str
    check: dict[str, Any]
    schedule: ScheduleDef | None = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        if not v:
            raise ValueError("missing name")
        if not valid_endpoint_name(v):
            raise ValueError(f"illegal name: '{v}' (must match '{_ENDPOINT_NAME.pattern}')")
        return v

    @field_validator("type")
    @classmethod
    def check_type(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("missing type")
        return v.strip()

    @field_validator("check")
    @classmethod
    def check_check(cls, v: dict[str, Any]) -> dict[str, Any]:
        if not v:
            raise ValueError("missing check")
        return v


class EmailAuthDef(_Model):
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        if not valid_login_name(v):
            raise ValueError(f"illegal username: '{v}'")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        if not v:
            raise ValueError("no password given")
        return v


class EmailDef(_Model):
    smtp_host: str = Field(alias="smtpHost")
    smtp_port: int = Field(default=25, alias="smtpPort")
    auth: EmailAuthDef | None = None
    sender: str = Field(alias="from")
    to: list[str]
    starttls: bool = False

    @field_validator("smtp_host")
    @classmethod
    def check_host(cls, v: str) -> str:
        return _check_host(v)

    @field_validator("smtp_port")
    @classmethod
    def check_port(cls, v: int) -> int:
        return _check_port(v)

    @field_validator("sender")
    @classmethod
    def check_sender(cls, v: str) -> str:
        return _check_address(v)

    @field_validator("to")
    @classmethod
    def check_to(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("no receivers given")
        return [_check_address(addr) for addr in v]


class WebhookDef(_Model):
    url: str
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"webhook url must be http(s): '{v}'")
        return v


class TelegramDef(_Model):
    bot_token: str
    chat_id: str


class AlerterDef(_Model):
    advertised_host: str = Field(default="", alias="advertisedHost")
    advertised_port: int = Field(default=0, alias="advertisedPort")
    reminder_delay: Duration = Field(default=3600.0, alias="reminderDelay")
    email: EmailDef | None = None
    webhooks: list[WebhookDef] = Field(default_factory=list)
    telegram: TelegramDef | None = None

    @field_validator("advertised_host")
    @classmethod
    def check_host(cls, v: str) -> str:
        return _check_host(v) if v else v

    @field_validator("advertised_port")
    @classmethod
    def check_port(cls, v: int) -> int:
        return _check_port(v) if v else v


class EngineConfig(_Model):
    default_schedule: ScheduleDef | None = Field(default=None, alias="defaultSchedule")
    endpoints: list[EndpointDef] = Field(default_factory=list)
    alerter: AlerterDef = Field(default_factory=AlerterDef)

    @model_validator(mode="after")
    def check_unique_names(self) -> EngineConfig:
        seen: set[str] = set()
        for ep in self.endpoints:
            if ep.name in seen:
                raise ValueError(
                    f"endpoint name '{ep.name}' is used multiple times -- endpoint names must be unique"
                )
            seen.add(ep.name)
        return self

    def resolve_default_schedule(self) -> Schedule:
        if self.default_schedule is not None:
            return self.default_schedule.to_schedule()
        return DEFAULT_SCHEDULE

    def schedule_for(self, endpoint: EndpointDef) -> Schedule:
        """Endpoint override if given, else the engine-wide default."""
        if endpoint.schedule is not None:
            return endpoint.schedule.to_schedule()
        return self.resolve_default_schedule()


# ── Loading ──────────────────────────────────────────────────────────────────


def parse_engine_config(raw: Any) -> EngineConfig:
    """Validate an already-parsed config document."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("config root must be a mapping")
    try:
        return EngineConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"illegal configuration: {_describe(e)}") from e


def load_engine_config(path: Path | str) -> EngineConfig:
    """Read, parse and validate the engine config file at ``path``."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse {path}: {e}") from e

    config = parse_engine_config(raw)
    logger.info("Loaded %d endpoints from %s", len(config.endpoints), path)
    return config


def _describe(err: ValidationError) -> str:
    parts = []
    for e in err.errors():
        loc = ".".join(str(p) for p in e["loc"])
        parts.append(f"{loc}: {e['msg']}" if loc else e["msg"])
    return "; ".join(parts)
