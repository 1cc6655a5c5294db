"""Mailgun email transport."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import requests

from visual_monitor.errors import ConfigurationError, NotificationError
from visual_monitor.models.report import Attachment

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.mailgun.net"
REQUEST_TIMEOUT_SECONDS = 60


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise ConfigurationError(f"Missing env var: {name}")
    return value


@dataclass
class MailgunSettings:
    api_key: str
    domain: str
    to: str
    sender: str
    base_url: str = DEFAULT_BASE_URL

    @classmethod
    def from_env(cls) -> "MailgunSettings":
        """Read MAILGUN_API_KEY, MAILGUN_DOMAIN, ALERT_EMAIL_TO (+ optional overrides)."""
        api_key = _require_env("MAILGUN_API_KEY")
        domain = _require_env("MAILGUN_DOMAIN")
        to = _require_env("ALERT_EMAIL_TO")
        base_url = (os.environ.get("MAILGUN_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        sender = os.environ.get("MAIL_FROM") or f"Visual Monitor <postmaster@{domain}>"
        return cls(api_key=api_key, domain=domain, to=to, sender=sender, base_url=base_url)

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/v3/{self.domain}/messages"


class MailgunTransport:
    """Sends one multipart message per call through the Mailgun HTTP API."""

    def __init__(self, settings: MailgunSettings, session: requests.Session | None = None):
        self.settings = settings
        self.session = session or requests.Session()

    def send(self, subject: str, text: str, attachments: list[Attachment]) -> None:
        data = {
            "from": self.settings.sender,
            "to": self.settings.to,
            "subject": subject,
            "text": text,
        }
        handles = [open(Path(a.path), "rb") for a in attachments]
        try:
            files = [("attachment", (a.name, fh)) for a, fh in zip(attachments, handles)]
            logger.info("Sending alert to %s (%d attachment(s))", self.settings.to, len(files))
            response = self.session.post(
                self.settings.messages_url,
                auth=("api", self.settings.api_key),
                data=data,
                files=files or None,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        finally:
            for fh in handles:
                fh.close()

        if not response.ok:
            raise NotificationError(response.status_code, response.reason or "", response.text)
        logger.debug("Mailgun accepted message: %s", response.text[:200])
