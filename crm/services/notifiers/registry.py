# crm/services/notifiers/registry.py
"""
Fábrica de notifiers: devolve o provedor certo para a conta / canal.

Rotas recebem a fábrica via ``Depends(get_notifier_factory)``; os testes
trocam por uma fábrica falsa com ``app.dependency_overrides``.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.core.errors import NotConfiguredError
from crm.models.integration import Integration
from crm.services.notifiers.evolution import EvolutionWhatsApp
from crm.services.notifiers.resend import ResendEmail


class WhatsAppSender(Protocol):
    def send(self, to: str, text: str) -> None: ...
    def fetch_groups(self) -> list[dict]: ...


class EmailSender(Protocol):
    def send(self, to: str, subject: str, html: str) -> None: ...


@lru_cache
def _evolution(api_url: str, api_key: str, instance_name: str) -> EvolutionWhatsApp:
    return EvolutionWhatsApp(api_url=api_url, api_key=api_key, instance_name=instance_name)


@lru_cache
def _resend(api_key: str, from_email: str, api_url: str) -> ResendEmail:
    return ResendEmail(api_key=api_key, from_email=from_email, api_url=api_url)


def whatsapp_integration(db: Session, account_id: int) -> Optional[Integration]:
    stmt = (
        select(Integration)
        .where(
            Integration.account_id == account_id,
            Integration.type.in_(("evolution", "whatsapp")),
            Integration.status == "connected",
        )
        .order_by(Integration.id)
    )
    return db.scalars(stmt).first()


class NotifierFactory:
    def whatsapp(self, db: Session, account_id: int) -> WhatsAppSender:
        integration = whatsapp_integration(db, account_id)
        config = (integration.config or {}) if integration else {}
        if not config.get("api_url") or not config.get("instance_name"):
            raise NotConfiguredError("WhatsApp não configurado")
        return _evolution(config["api_url"], config.get("api_key") or "", config["instance_name"])

    def email(self) -> EmailSender:
        if not settings.RESEND_API_KEY:
            raise NotConfiguredError("Resend API não configurada")
        return _resend(settings.RESEND_API_KEY, settings.RESEND_FROM, settings.RESEND_API_URL)


_default_factory = NotifierFactory()


def get_notifier_factory() -> NotifierFactory:
    return _default_factory
