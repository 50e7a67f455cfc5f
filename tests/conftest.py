"""Shared test fixtures."""

from __future__ import annotations

import pytest

from helpers import FakeClock, RecordingSink, SleepRecorder


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def engine_config_dict() -> dict:
    return {
        "default_schedule": {
            "interval": "5m",
            "retries": {"attempts": 2, "delay": "1s", "exponential_backoff": False},
        },
        "endpoints": [
            {
                "name": "api",
                "type": "http",
                "check": {"url": "http://api.example.com/health"},
            },
            {
                "name": "cache",
                "type": "tcp",
                "check": {"host": "cache.example.com", "port": 6379},
                "schedule": {
                    "interval": "30s",
                    "retries": {"attempts": 1, "delay": 0},
                },
            },
        ],
        "alerter": {
            "advertised_host": "monitor.example.com",
            "advertised_port": 8443,
            "reminder_delay": "10s",
        },
    }
