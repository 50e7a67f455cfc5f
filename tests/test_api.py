"""Tests for the query API routes."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from helpers import NOK, OK, RecordingSink, ScriptedChecker
from pingwatch.api.server import create_app
from pingwatch.endpoints.registry import parse_engine_config
from pingwatch.engine.engine import Engine
from pingwatch.engine.models import Schedule


@pytest.fixture
def engine(engine_config_dict):
    engine = Engine.build(parse_engine_config(engine_config_dict), sinks=[])
    engine.tasks["api"].checker = ScriptedChecker([OK])
    engine.tasks["cache"].checker = ScriptedChecker([NOK])
    return engine


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine, run_engine=False))


def run_cycle(engine: Engine, name: str) -> None:
    asyncio.run(engine.tasks[name].run_cycle())


class TestEndpointRoutes:
    def test_list(self, client):
        resp = client.get("/endpoints/")
        assert resp.status_code == 200
        assert resp.json() == {
            "endpoints": [
                "http://testserver/endpoints/api",
                "http://testserver/endpoints/cache",
            ]
        }

    def test_status_before_first_check(self, client):
        resp = client.get("/endpoints/api")
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "api"
        assert data["status"] == "UNKNOWN"
        assert data["consecutive"] == 1
        assert data["latest_ok"] is None
        assert data["latest_nok"] is None

    def test_status_after_check(self, client, engine):
        run_cycle(engine, "cache")
        run_cycle(engine, "cache")
        data = client.get("/endpoints/cache").json()
        assert data["status"] == "NOK"
        assert data["consecutive"] == 2
        assert data["error"] == "expected status code (200) differs from actual (503)"
        assert data["latest_nok"] is not None

    def test_unknown_endpoint(self, client):
        resp = client.get("/endpoints/nope")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Endpoint not found: nope"

    def test_output(self, client, engine):
        run_cycle(engine, "api")
        resp = client.get("/endpoints/api/output")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/plain")
        assert resp.content == b"all good\n"

    def test_output_not_recorded_yet(self, client):
        resp = client.get("/endpoints/api/output")
        assert resp.status_code == 404
        assert "No output has been recorded (yet)" in resp.json()["detail"]

    def test_output_unknown_endpoint(self, client):
        resp = client.get("/endpoints/nope/output")
        assert resp.status_code == 404


class TestLifespan:
    def test_engine_started_and_stopped(self, engine_config_dict):
        sink = RecordingSink()
        engine = Engine.build(parse_engine_config(engine_config_dict), sinks=[sink])
        for task in engine.tasks.values():
            task.checker = ScriptedChecker([OK])
            task.schedule = Schedule(interval=3600, attempts=1)

        with TestClient(create_app(engine)) as client:
            assert engine.running
            assert client.get("/endpoints/api").status_code == 200
        assert not engine.running
        assert sink.closed
