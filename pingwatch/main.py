"""Entry point for pingwatch."""

from __future__ import annotations

import argparse
import asyncio
import logging
import socket
import sys

import httpx
import uvicorn
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pingwatch.config import Settings
from pingwatch.endpoints.registry import ConfigError, EngineConfig, load_engine_config, valid_host
from pingwatch.engine.engine import Engine, EngineBuildError, configured_base_url

console = Console()
logger = logging.getLogger("pingwatch")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def fail(message: str) -> None:
    console.print(f"[bold red]error:[/bold red] {message}")
    sys.exit(1)


# ── Advertised address ───────────────────────────────────────────────────────


def detect_interface_ip() -> str:
    """Best-effort non-loopback address of this machine (may not be reachable)."""
    logger.info("trying to determine external IP from network interfaces ...")
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
        # no packet is sent; this only selects the outbound interface
        s.connect(("192.0.2.1", 80))
        ip = s.getsockname()[0]
    if ip.startswith("127."):
        raise OSError("failed to find a non-loopback network interface")
    return ip


def detect_external_ip(detection_url: str) -> str:
    logger.info("attempt to determine external IP address via %s ...", detection_url)
    try:
        resp = httpx.get(detection_url, timeout=5)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("failed to contact %s: %s", detection_url, e)
        return detect_interface_ip()
    ip = resp.text.strip()
    if not valid_host(ip):
        logger.warning("%s answered with something that is not an address: %r", detection_url, ip[:60])
        return detect_interface_ip()
    return ip


def advertised_base_url(config: EngineConfig, settings: Settings) -> str:
    """Resolve the base URL put into alert output links.

    Host: config file, then settings, then IP detection. Port: config file,
    then settings.advertised_port, then the API port.
    """
    base_url = configured_base_url(config, settings)
    if base_url:
        return base_url

    logger.info("no advertised host configured: determining external IP ...")
    try:
        host = detect_external_ip(settings.ip_detection_url)
    except OSError as e:
        fail(f"no advertised host given and failed to detect external IP: {e}")
    logger.info("using %s as advertised host", host)
    settings.advertised_host = host
    return configured_base_url(config, settings)


# ── Commands ─────────────────────────────────────────────────────────────────


def load_or_fail(path: str) -> EngineConfig:
    try:
        return load_engine_config(path)
    except ConfigError as e:
        fail(str(e))


def run_server(config_path: str, settings: Settings) -> None:
    """Build the engine and serve the query API until interrupted."""
    config = load_or_fail(config_path)
    base_url = advertised_base_url(config, settings)

    logger.info("setting up engine ...")
    try:
        engine = Engine.build(config, settings, base_url=base_url)
    except EngineBuildError as e:
        fail(f"engine setup failed: {e}")

    from pingwatch.api.server import create_app

    console.print(Panel(
        f"Monitoring {len(engine.tasks)} endpoints — alerts link to {base_url}",
        title="pingwatch", style="bold green",
    ))
    uvicorn.run(
        create_app(engine),
        host=settings.api_host,
        port=settings.api_port,
        ssl_certfile=settings.certfile or None,
        ssl_keyfile=settings.keyfile or None,
        log_level=settings.log_level.lower(),
    )


async def check_once(engine: Engine) -> None:
    """Run one cycle of every endpoint, consuming the events without alerting."""
    tasks = list(engine.tasks.values())

    async def drain() -> None:
        for _ in tasks:
            await engine.events.get()

    await asyncio.gather(*(t.run_cycle() for t in tasks), drain())
    await engine.await_shutdown()


def run_check(config_path: str, settings: Settings) -> None:
    """Check every endpoint once and print a summary table."""
    config = load_or_fail(config_path)
    try:
        engine = Engine.build(config, settings, sinks=[])
    except EngineBuildError as e:
        fail(str(e))

    with console.status("[bold green]Checking endpoints..."):
        asyncio.run(check_once(engine))

    table = Table(title="Endpoint status")
    table.add_column("Endpoint")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Error", overflow="fold")
    failures = 0
    for name, task in engine.tasks.items():
        status = task.status
        ok = status.status.value == "OK"
        failures += 0 if ok else 1
        style = "green" if ok else "red"
        table.add_row(name, task.check_type, f"[{style}]{status.status.value}[/{style}]",
                      status.latest_outcome.error or "")
    console.print(table)
    if failures:
        sys.exit(2)


def main() -> None:
    parser = argparse.ArgumentParser(description="pingwatch — continuously monitors a collection of endpoints")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    sub = parser.add_subparsers(dest="command")

    serve_parser = sub.add_parser("serve", help="Run the engine and the query API")
    serve_parser.add_argument("config", help="Engine config file (YAML or JSON)")
    serve_parser.add_argument("--port", type=int, help="API port")
    serve_parser.add_argument("--advertised-host", help="Host advertised in alert output URLs")

    check_parser = sub.add_parser("check", help="Check every endpoint once and exit")
    check_parser.add_argument("config", help="Engine config file (YAML or JSON)")

    args = parser.parse_args()

    try:
        settings = Settings()
    except ValidationError as e:
        fail(f"invalid settings: {e}")
    if args.log_level:
        settings.log_level = args.log_level
    setup_logging(settings.log_level)

    if args.command == "serve":
        if args.port:
            settings.api_port = args.port
        if args.advertised_host:
            settings.advertised_host = args.advertised_host
        run_server(args.config, settings)
    elif args.command == "check":
        run_check(args.config, settings)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
