# crm/services/notifiers/evolution.py
from __future__ import annotations

from typing import Any

import structlog

from crm.core.validators import only_digits
from crm.services.notifiers.base import BaseNotifier

log = structlog.get_logger(__name__)


class EvolutionWhatsApp(BaseNotifier):
    """
    WhatsApp via Evolution API (instância própria da conta).

    Texto:  POST {api_url}/message/sendText/{instance}  {"number", "text"}
    Grupos: GET  {api_url}/group/fetchAllGroups/{instance}
    """

    def __init__(self, api_url: str, api_key: str, instance_name: str, timeout: float | None = None) -> None:
        super().__init__("evolution", "whatsapp", timeout)
        self._api_url = api_url.rstrip("/")
        self._api_key = api_key or ""
        self._instance = instance_name

    @property
    def _headers(self) -> dict[str, str]:
        return {"apikey": self._api_key, "Content-Type": "application/json"}

    def send(self, to: str, text: str) -> None:
        # grupos (xxx@g.us) vão com o JID completo; telefones só com dígitos
        number = to if "@" in to else only_digits(to)
        self._request(
            "POST",
            f"{self._api_url}/message/sendText/{self._instance}",
            json={"number": number, "text": text},
            headers=self._headers,
        )
        log.info("whatsapp.sent", provider=self.provider, to=number)

    def fetch_groups(self) -> list[dict[str, Any]]:
        resp = self._request(
            "GET",
            f"{self._api_url}/group/fetchAllGroups/{self._instance}",
            params={"getParticipants": "false"},
            headers=self._headers,
        )
        data = resp.json()
        return data if isinstance(data, list) else []
