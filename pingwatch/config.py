from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Process-level configuration loaded from environment / .env file.

    Endpoint definitions live in the engine config file (see
    ``pingwatch.endpoints.registry``); these settings only cover how the
    process itself runs.
    """

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "PINGWATCH_",
        "extra": "ignore",
    }

    # Logging
    log_level: str = "INFO"

    # Query API
    api_host: str = "0.0.0.0"
    api_port: int = 8443
    certfile: str = ""  # TLS is enabled only when both cert and key are set
    keyfile: str = ""

    # Address advertised in alert output URLs (config file takes precedence)
    advertised_host: str = ""
    advertised_port: int = 0  # 0 = fall back to api_port
    ip_detection_url: str = "http://ipecho.net/plain"

    # Engine
    event_queue_size: int = Field(default=100, gt=0)  # 0 would make the queue unbounded
    check_workers: int = Field(default=8, gt=0)  # minimum threads running blocking checker calls

    # Alert dispatch
    max_inflight_alerts: int = Field(default=64, gt=0)
    alert_send_timeout: float = Field(default=30.0, gt=0)  # seconds per sink send

    @property
    def use_tls(self) -> bool:
        return bool(self.certfile and self.keyfile)
