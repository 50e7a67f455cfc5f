"""Endpoint registry — engine config file models and loader."""

from pingwatch.endpoints.registry import (
    AlerterDef,
    ConfigError,
    EndpointDef,
    EngineConfig,
    load_engine_config,
    parse_engine_config,
)

__all__ = [
    "AlerterDef",
    "ConfigError",
    "EndpointDef",
    "EngineConfig",
    "load_engine_config",
    "parse_engine_config",
]
