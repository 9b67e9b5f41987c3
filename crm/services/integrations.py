# crm/services/integrations.py
"""
Integrações por conta (config em JSON) e clientes HTTP das fontes de
importação em lote (Pipedrive / Omie).

Toda fonte entrega registros no mesmo formato (``ExternalClient``), que é o
que ``crm.services.sync`` consome.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Iterator, Optional, Protocol

import backoff
import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.core.errors import IntegrationError, NotConfiguredError, TemporaryIntegrationError
from crm.models.integration import Integration

log = structlog.get_logger(__name__)

SECRET_KEYS = frozenset({"api_key", "api_token", "app_secret", "app_key", "token", "secret", "password"})
MASK = "••••••"


# ----------------------------------------------------------------------
# Config
# ----------------------------------------------------------------------
def mask_config(config: Optional[dict]) -> dict:
    masked = {}
    for key, value in (config or {}).items():
        if key in SECRET_KEYS and value:
            text = str(value)
            masked[key] = MASK + text[-4:] if len(text) > 8 else MASK
        else:
            masked[key] = value
    return masked


def merge_config(current: Optional[dict], patch: dict) -> dict:
    """Segredos mascarados que voltam do front não sobrescrevem o valor real."""
    merged = dict(current or {})
    for key, value in patch.items():
        if key in SECRET_KEYS and isinstance(value, str) and value.startswith(MASK):
            continue
        merged[key] = value
    return merged


def get_integration(db: Session, account_id: int, type_: str) -> Optional[Integration]:
    return db.scalar(select(Integration).where(Integration.account_id == account_id, Integration.type == type_))


# ----------------------------------------------------------------------
# Fontes
# ----------------------------------------------------------------------
@dataclass
class ExternalClient:
    external_id: str
    full_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    document: Optional[str] = None
    company_name: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


class ClientSource(Protocol):
    name: str

    def iter_clients(self) -> Iterator[ExternalClient]: ...


@backoff.on_exception(backoff.expo, TemporaryIntegrationError, max_tries=3, jitter=None)
def _call(provider: str, method: str, url: str, **kw) -> Any:
    try:
        resp = httpx.request(method, url, timeout=settings.NOTIFIER_TIMEOUT, **kw)
    except httpx.TransportError as exc:
        raise TemporaryIntegrationError(f"{provider}: falha de conexão") from exc
    if resp.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        raise TemporaryIntegrationError(f"{provider}: erro {resp.status_code}", details={"status": resp.status_code})
    if resp.status_code >= HTTPStatus.BAD_REQUEST:
        raise IntegrationError(f"{provider}: erro {resp.status_code}", details={"status": resp.status_code})
    try:
        return resp.json()
    except ValueError as exc:
        raise IntegrationError(f"{provider}: resposta inválida") from exc


def _primary(values: Any) -> Optional[str]:
    # pipedrive: [{"value": "...", "primary": true}, ...]
    if not isinstance(values, list):
        return values or None
    items = [v for v in values if isinstance(v, dict) and v.get("value")]
    chosen = next((v for v in items if v.get("primary")), items[0] if items else None)
    return chosen["value"] if chosen else None


class PipedriveSource:
    name = "pipedrive"
    page_size = 100

    def __init__(self, api_token: str, base_url: Optional[str] = None) -> None:
        self._token = api_token
        self._base = (base_url or settings.PIPEDRIVE_API_BASE).rstrip("/")

    def iter_clients(self) -> Iterator[ExternalClient]:
        start = 0
        while True:
            data = _call(self.name, "GET", f"{self._base}/persons",
                         params={"api_token": self._token, "start": start, "limit": self.page_size})
            for person in data.get("data") or []:
                org = person.get("org_id")
                yield ExternalClient(
                    external_id=str(person["id"]),
                    full_name=person.get("name") or "Sem nome",
                    phone=_primary(person.get("phone")),
                    email=_primary(person.get("email")),
                    company_name=org.get("name") if isinstance(org, dict) else None,
                    raw=person,
                )
            pagination = (data.get("additional_data") or {}).get("pagination") or {}
            if not pagination.get("more_items_in_collection"):
                return
            start = pagination.get("next_start", start + self.page_size)


class OmieSource:
    name = "omie"
    page_size = 50

    def __init__(self, app_key: str, app_secret: str, base_url: Optional[str] = None) -> None:
        self._key = app_key
        self._secret = app_secret
        self._base = (base_url or settings.OMIE_API_BASE).rstrip("/")

    def iter_clients(self) -> Iterator[ExternalClient]:
        page = 1
        while True:
            data = _call(self.name, "POST", f"{self._base}/geral/clientes/", json={
                "call": "ListarClientes",
                "app_key": self._key,
                "app_secret": self._secret,
                "param": [{"pagina": page, "registros_por_pagina": self.page_size}],
            })
            for item in data.get("clientes_cadastro") or []:
                ddd = item.get("telefone1_ddd") or ""
                number = item.get("telefone1_numero") or ""
                yield ExternalClient(
                    external_id=str(item["codigo_cliente_omie"]),
                    full_name=item.get("nome_fantasia") or item.get("razao_social") or "Sem nome",
                    phone=f"{ddd}{number}" or None,
                    email=item.get("email") or None,
                    document=item.get("cnpj_cpf") or None,
                    company_name=item.get("razao_social") or None,
                    raw=item,
                )
            if page >= int(data.get("total_de_paginas") or 1):
                return
            page += 1


def source_for(integration: Optional[Integration]) -> ClientSource:
    config = (integration.config or {}) if integration else {}
    if integration is not None and integration.type == "pipedrive" and config.get("api_token"):
        return PipedriveSource(config["api_token"], config.get("base_url"))
    if integration is not None and integration.type == "omie" and config.get("app_key") and config.get("app_secret"):
        return OmieSource(config["app_key"], config["app_secret"], config.get("base_url"))
    raise NotConfiguredError("Integração não configurada.")
