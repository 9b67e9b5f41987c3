# crm/services/notifiers/resend.py
from __future__ import annotations

import structlog

from crm.services.notifiers.base import BaseNotifier

log = structlog.get_logger(__name__)


class ResendEmail(BaseNotifier):
    """E-mail transacional via API HTTP do Resend."""

    def __init__(self, api_key: str, from_email: str, api_url: str, timeout: float | None = None) -> None:
        super().__init__("resend", "email", timeout)
        self._api_key = api_key
        self._from = from_email
        self._api_url = api_url

    def send(self, to: str, subject: str, html: str) -> None:
        self._request(
            "POST",
            self._api_url,
            json={"from": self._from, "to": [to], "subject": subject, "html": html},
            headers={"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"},
        )
        log.info("email.sent", provider=self.provider, to=to)
