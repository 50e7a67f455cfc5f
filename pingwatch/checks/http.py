"""HTTP(S) checker — GET a URL and compare the response status code."""

from __future__ import annotations

import logging
from urllib.parse import urlparse

import httpx
from pydantic import Field, field_validator

from pingwatch.checks.base import Checker, CheckPayload, register_checker
from pingwatch.endpoints.durations import Duration
from pingwatch.engine.models import CheckOutcome

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 30.0


class BasicAuth(CheckPayload):
    username: str
    password: str

    @field_validator("username", "password")
    @classmethod
    def check_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("basic auth: blank username/password")
        return v


class HTTPExpect(CheckPayload):
    status_code: int = Field(default=200, alias="statusCode")

    @field_validator("status_code")
    @classmethod
    def check_status(cls, v: int) -> int:
        if not 100 <= v < 600:
            raise ValueError(f"illegal status code: {v}")
        return v


class HTTPCheck(CheckPayload):
    url: str
    verify_cert: bool = Field(default=False, alias="verifyCert")
    basic_auth: BasicAuth | None = Field(default=None, alias="basicAuth")
    expect: HTTPExpect = Field(default_factory=HTTPExpect)
    timeout: Duration = DEFAULT_HTTP_TIMEOUT

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"invalid URL: '{v}'")
        return v


@register_checker
class HTTPChecker(Checker):
    """Checks an endpoint with a single HTTP GET.

    ``transport`` can be injected for tests (``httpx.MockTransport``).
    """

    type_name = "http"
    payload_model = HTTPCheck

    def __init__(self, check: HTTPCheck, transport: httpx.BaseTransport | None = None) -> None:
        self.config = check
        self._transport = transport

    def describe(self) -> str:
        return f"GET {self.config.url}"

    def check(self) -> CheckOutcome:
        conf = self.config
        auth = None
        if conf.basic_auth is not None:
            auth = httpx.BasicAuth(conf.basic_auth.username, conf.basic_auth.password)

        try:
            # fresh client per call, no connection reuse between checks
            with httpx.Client(
                timeout=conf.timeout,
                verify=conf.verify_cert,
                transport=self._transport,
                headers={"Connection": "close"},
            ) as client:
                resp = client.get(conf.url, auth=auth)
        except httpx.HTTPError as e:
            return CheckOutcome.nok(f"check failed: {type(e).__name__}: {e}")

        expected = conf.expect.status_code
        if resp.status_code != expected:
            return CheckOutcome.nok(
                f"expected status code ({expected}) differs from actual ({resp.status_code})"
            )
        return CheckOutcome.ok(resp.content)
