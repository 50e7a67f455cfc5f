"""Webhook alert sinks — generic JSON POST and Telegram Bot API.

Both use httpx async clients; a non-2xx answer is reported as a failed send.
"""

from __future__ import annotations

import logging

import httpx

from pingwatch.alerts.base import AlertRecord, AlertSink

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org/bot{token}"


class WebhookSink(AlertSink):
    """POSTs the alert record as JSON to a URL."""

    name = "webhook"

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.headers = headers or {}
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def send(self, record: AlertRecord) -> bool:
        resp = await self._client.post(self.url, json=record.to_dict(), headers=self.headers)
        if resp.is_success:
            logger.debug("Webhook: alert for %s sent", record.endpoint_name)
            return True
        logger.warning("Webhook %s returned %d: %s", self.url, resp.status_code, resp.text[:200])
        return False

    async def close(self) -> None:
        await self._client.aclose()


class TelegramSink(AlertSink):
    """Sends a Markdown message to one Telegram chat."""

    name = "telegram"

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.bot_token = bot_token
        self.chat_id = chat_id
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def format(self, record: AlertRecord) -> str:
        icon = "✅" if record.ok else "🔴"
        text = (
            f"{icon} *Endpoint {self._escape(record.endpoint_name)} is {record.status_text}*\n"
            f"Consecutive: {record.consecutive}\n"
        )
        if record.error:
            text += f"Error: `{self._escape(record.error[:300])}`\n"
        text += f"Output: {record.output_url}"
        return text

    async def send(self, record: AlertRecord) -> bool:
        url = f"{TELEGRAM_API.format(token=self.bot_token)}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": self.format(record),
            "parse_mode": "Markdown",
        }
        resp = await self._client.post(url, json=payload)
        if resp.status_code == 200:
            logger.debug("Telegram: alert for %s sent", record.endpoint_name)
            return True
        logger.warning("Telegram send failed: %d %s", resp.status_code, resp.text[:200])
        return False

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _escape(text: str) -> str:
        """Escape Markdown special chars for Telegram."""
        for char in ("_", "*", "`", "["):
            text = text.replace(char, f"\\{char}")
        return text
