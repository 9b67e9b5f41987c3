# crm/core/errors.py
"""
Hierarquia de erros de domínio.

Toda falha que chega ao usuário vira o mesmo payload de "toast":
``{"code": ..., "message": ..., "details": ...}`` (ver ``crm.main``).
As mensagens são em pt-BR porque vão direto para a interface.
"""
from __future__ import annotations

from typing import Any


class CRMError(Exception):
    status_code: int = 400
    code: str = "CRM_ERROR"
    message: str = "Não foi possível concluir a operação."

    def __init__(self, message: str | None = None, *, details: Any = None) -> None:
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFoundError(CRMError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Registro não encontrado."


class ValidationFailed(CRMError):
    status_code = 422
    code = "VALIDATION_ERROR"
    message = "Dados inválidos."


class ConflictError(CRMError):
    status_code = 409
    code = "CONFLICT"
    message = "Conflito com o estado atual do registro."


class InvalidTransition(ConflictError):
    code = "INVALID_TRANSITION"
    message = "Transição de status não permitida."


class ContractCycleError(ConflictError):
    code = "CONTRACT_CYCLE"
    message = "O contrato pai informado criaria um ciclo de renovações."


# ------------------------------------------------------------------
# Envio de mensagens / integrações externas
# ------------------------------------------------------------------
class NotificationError(CRMError):
    """Base para falhas de envio (WhatsApp / e-mail)."""
    status_code = 502
    code = "NOTIFICATION_ERROR"
    message = "Falha ao enviar mensagem."


class PermanentNotificationError(NotificationError):
    """Erro que não adianta repetir: destinatário inválido, provedor sem configuração, 4xx."""


class TemporaryNotificationError(NotificationError):
    """Timeout, 5xx, falha de rede."""


class NotConfiguredError(PermanentNotificationError):
    code = "NOT_CONFIGURED"
    message = "Integração não configurada."


class IntegrationError(CRMError):
    status_code = 502
    code = "INTEGRATION_ERROR"
    message = "Falha ao comunicar com a integração."


class TemporaryIntegrationError(IntegrationError):
    """Timeout / 5xx do provedor; elegível a retry."""
