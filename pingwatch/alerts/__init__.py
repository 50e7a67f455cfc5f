"""Alert sinks — email, generic webhook and Telegram."""

from __future__ import annotations

import logging

from pingwatch.alerts.base import AlertRecord, AlertSink
from pingwatch.alerts.email import EmailSink
from pingwatch.alerts.webhook import TelegramSink, WebhookSink
from pingwatch.endpoints.registry import AlerterDef

logger = logging.getLogger(__name__)


def build_sinks(alerter: AlerterDef) -> list[AlertSink]:
    """Instantiate every sink configured in the alerter section."""
    sinks: list[AlertSink] = []
    if alerter.email is not None:
        logger.debug("setting up email sink ...")
        sinks.append(EmailSink(alerter.email))
    for hook in alerter.webhooks:
        logger.debug("setting up webhook sink for %s ...", hook.url)
        sinks.append(WebhookSink(hook.url, headers=hook.headers))
    if alerter.telegram is not None:
        logger.debug("setting up telegram sink ...")
        sinks.append(TelegramSink(alerter.telegram.bot_token, alerter.telegram.chat_id))
    return sinks


__all__ = ["AlertRecord", "AlertSink", "EmailSink", "TelegramSink", "WebhookSink", "build_sinks"]
