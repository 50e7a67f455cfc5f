"""Tests for CLI bootstrap helpers."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import httpx
import pytest

from helpers import NOK, OK, RecordingSink, ScriptedChecker
from pingwatch.config import Settings
from pingwatch.endpoints.registry import parse_engine_config
from pingwatch.engine.engine import Engine
from pingwatch.engine.models import CheckStatus
from pingwatch.main import advertised_base_url, check_once, detect_external_ip, load_or_fail, main


class TestAdvertisedBaseUrl:
    def test_from_config(self, engine_config_dict):
        config = parse_engine_config(engine_config_dict)
        assert advertised_base_url(config, Settings(_env_file=None)) == "http://monitor.example.com:8443"

    def test_settings_fallback_and_tls(self, engine_config_dict):
        engine_config_dict["alerter"] = {}
        config = parse_engine_config(engine_config_dict)
        settings = Settings(
            _env_file=None, advertised_host="mon.internal", api_port=9443,
            certfile="cert.pem", keyfile="key.pem",
        )
        assert advertised_base_url(config, settings) == "https://mon.internal:9443"

    @patch("pingwatch.main.detect_external_ip", return_value="203.0.113.7")
    def test_detected_host(self, mock_detect, engine_config_dict):
        engine_config_dict["alerter"] = {"advertised_port": 8000}
        config = parse_engine_config(engine_config_dict)
        assert advertised_base_url(config, Settings(_env_file=None)) == "http://203.0.113.7:8000"
        mock_detect.assert_called_once()


class TestDetectExternalIp:
    @patch("pingwatch.main.httpx.get")
    def test_uses_detection_service(self, mock_get):
        mock_get.return_value = MagicMock(text="198.51.100.4\n", raise_for_status=MagicMock())
        assert detect_external_ip("http://ip.example.com") == "198.51.100.4"

    @patch("pingwatch.main.detect_interface_ip", return_value="10.1.2.3")
    @patch("pingwatch.main.httpx.get", side_effect=httpx.ConnectError("offline"))
    def test_falls_back_to_interface(self, mock_get, mock_iface):
        assert detect_external_ip("http://ip.example.com") == "10.1.2.3"
        mock_iface.assert_called_once()

    @patch("pingwatch.main.detect_interface_ip", return_value="10.1.2.3")
    @patch("pingwatch.main.httpx.get")
    def test_garbage_answer_falls_back(self, mock_get, mock_iface):
        mock_get.return_value = MagicMock(text="<html>rate limited</html>", raise_for_status=MagicMock())
        assert detect_external_ip("http://ip.example.com") == "10.1.2.3"


class TestCommands:
    def test_load_or_fail_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            load_or_fail(str(tmp_path / "missing.yaml"))
        assert exc.value.code == 1

    def test_check_once(self, engine_config_dict):
        sink = RecordingSink()
        engine = Engine.build(parse_engine_config(engine_config_dict), sinks=[sink])
        engine.tasks["api"].checker = ScriptedChecker([OK])
        engine.tasks["cache"].checker = ScriptedChecker([NOK])

        asyncio.run(check_once(engine))

        assert engine.get_status("api").status == CheckStatus.OK
        assert engine.get_status("cache").status == CheckStatus.NOK
        assert all(t.cycles == 1 for t in engine.tasks.values())
        assert sink.records == []
        assert engine.events.empty()

    def test_invalid_settings_exit(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PINGWATCH_EVENT_QUEUE_SIZE", "0")
        monkeypatch.setattr("sys.argv", ["pingwatch", "check", str(tmp_path / "pingwatch.yaml")])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1
