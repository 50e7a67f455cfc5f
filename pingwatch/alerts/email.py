"""Email alert sink — sends alerts over SMTP to a fixed list of receivers."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from pingwatch.alerts.base import AlertRecord, AlertSink
from pingwatch.endpoints.registry import EmailDef

logger = logging.getLogger(__name__)

SMTP_TIMEOUT = 30.0


class EmailSink(AlertSink):
    """SMTP sink. The blocking smtplib exchange runs in a worker thread."""

    name = "email"

    def __init__(self, config: EmailDef, timeout: float = SMTP_TIMEOUT) -> None:
        self.config = config
        self.timeout = timeout

    def message(self, record: AlertRecord) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.config.sender
        msg["To"] = ", ".join(self.config.to)
        msg["Subject"] = f"[pingwatch] endpoint [{record.endpoint_name}] is {record.status_text}"
        msg.set_content(record.to_json() + "\n")
        return msg

    async def send(self, record: AlertRecord) -> bool:
        msg = self.message(record)
        await asyncio.to_thread(self._deliver, msg)
        logger.debug("email for %s sent via %s:%d", record.endpoint_name,
                     self.config.smtp_host, self.config.smtp_port)
        return True

    def _deliver(self, msg: EmailMessage) -> None:
        conf = self.config
        logger.debug("sending email to %s:%d ...", conf.smtp_host, conf.smtp_port)
        with smtplib.SMTP(conf.smtp_host, conf.smtp_port, timeout=self.timeout) as smtp:
            if conf.starttls:
                smtp.starttls()
            if conf.auth is not None:
                smtp.login(conf.auth.username, conf.auth.password)
            smtp.send_message(msg)
