"""Checkers — pluggable one-shot health checks (http, ssh, tcp)."""

from pingwatch.checks.base import CHECKERS, Checker, CheckerError, build_checker, register_checker
from pingwatch.checks.http import HTTPChecker
from pingwatch.checks.ssh import SSHChecker
from pingwatch.checks.tcp import TCPChecker

__all__ = [
    "CHECKERS",
    "Checker",
    "CheckerError",
    "HTTPChecker",
    "SSHChecker",
    "TCPChecker",
    "build_checker",
    "register_checker",
]
