"""Raw TCP port connectivity checker."""

from __future__ import annotations

import socket
import time

from pydantic import field_validator

from pingwatch.checks.base import Checker, CheckPayload, register_checker
from pingwatch.endpoints.durations import Duration
from pingwatch.endpoints.registry import valid_host, valid_port
from pingwatch.engine.models import CheckOutcome


class TCPCheck(CheckPayload):
    host: str
    port: int
    timeout: Duration = 10.0

    @field_validator("host")
    @classmethod
    def check_host(cls, v: str) -> str:
        if not valid_host(v):
            raise ValueError(f"illegal host: '{v}'")
        return v

    @field_validator("port")
    @classmethod
    def check_port(cls, v: int) -> int:
        if not valid_port(v):
            raise ValueError(f"illegal port: {v}")
        return v


@register_checker
class TCPChecker(Checker):
    type_name = "tcp"
    payload_model = TCPCheck

    def __init__(self, check: TCPCheck) -> None:
        self.config = check

    def describe(self) -> str:
        return f"tcp {self.config.host}:{self.config.port}"

    def check(self) -> CheckOutcome:
        t0 = time.perf_counter()
        try:
            sock = socket.create_connection((self.config.host, self.config.port), timeout=self.config.timeout)
            sock.close()
        except OSError as e:
            return CheckOutcome.nok(f"check failed: TCP connect failed: {type(e).__name__}: {e}")
        latency = (time.perf_counter() - t0) * 1000
        return CheckOutcome.ok(f"Port {self.config.port} open ({latency:.1f}ms)\n".encode())
