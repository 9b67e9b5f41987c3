# crm/services/campaign_wizard.py
"""
Assistente de criação de campanha de lembretes.

Etapas lineares: evento -> participantes -> tipo -> mensagem -> revisão.
O estado é um modelo pydantic serializável; o front envia o estado atual
+ uma ação e recebe o próximo estado (``crm.api.v1.campaigns``). As funções
daqui são puras: nunca tocam banco nem rede. O envio final fica em
``crm.services.campaigns.submit_wizard``.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from crm.core.errors import ValidationFailed

Step = Literal["event", "participants", "type", "message", "review"]
CampaignType = Literal["notice", "rsvp", "checkin", "feedback"]

STEPS: tuple[str, ...] = ("event", "participants", "type", "message", "review")

STEP_LABELS = {
    "event": "Evento",
    "participants": "Participantes",
    "type": "Tipo",
    "message": "Mensagem",
    "review": "Revisão",
}

CAMPAIGN_TYPE_LABELS = {
    "notice": "Aviso",
    "rsvp": "Confirmação de presença",
    "checkin": "Check-in",
    "feedback": "Feedback",
}

DEFAULT_MESSAGES = {
    "notice": "Olá {nome}! Passando para lembrar do evento {evento} em {data}. Te esperamos!",
    "rsvp": "Olá {nome}! Você vem ao evento {evento} em {data}? Confirme sua presença: {link_rsvp}",
    "checkin": "Olá {nome}! Chegou a hora do {evento}. Faça seu check-in: {link_checkin}",
    "feedback": "Olá {nome}! Obrigado por participar do {evento}. Conta pra gente como foi: {link_feedback}",
}


class WizardState(BaseModel):
    step: Step = "event"
    event_id: Optional[int] = None
    selected_participant_ids: List[int] = Field(default_factory=list)
    campaign_type: CampaignType = "notice"
    campaign_name: str = ""
    message: str = DEFAULT_MESSAGES["notice"]
    email_subject: str = ""
    send_whatsapp: bool = True
    send_email: bool = False
    send_mode: Literal["now", "scheduled"] = "now"
    scheduled_at: Optional[datetime] = None
    # aba externa da tela de lembretes
    tab: Literal["create", "history"] = "create"


def initial_state(tab: str = "create") -> WizardState:
    return WizardState(tab=tab)


def _index(step: str) -> int:
    return STEPS.index(step)


# ----------------------------------------------------------------------
# Guardas / navegação
# ----------------------------------------------------------------------
def can_proceed(state: WizardState) -> bool:
    if state.step == "event":
        return state.event_id is not None
    if state.step == "participants":
        return len(state.selected_participant_ids) > 0
    if state.step == "type":
        return True
    if state.step == "message":
        return bool(state.message.strip()) and (state.send_whatsapp or state.send_email)
    return True


def next_step(state: WizardState) -> WizardState:
    i = _index(state.step)
    if i < len(STEPS) - 1 and can_proceed(state):
        return state.model_copy(update={"step": STEPS[i + 1]})
    return state


def prev_step(state: WizardState) -> WizardState:
    i = _index(state.step)
    if i > 0:
        return state.model_copy(update={"step": STEPS[i - 1]})
    return state


def go_to_step(state: WizardState, target: str) -> WizardState:
    """Clique no indicador de etapa: volta livre, avança só com a guarda atual ok."""
    if target not in STEPS:
        return state
    if _index(target) <= _index(state.step) or can_proceed(state):
        return state.model_copy(update={"step": target})
    return state


# ----------------------------------------------------------------------
# Edição de campos
# ----------------------------------------------------------------------
def select_event(state: WizardState, event_id: Optional[int]) -> WizardState:
    if event_id == state.event_id:
        return state
    # participantes pertencem ao evento anterior
    return state.model_copy(update={"event_id": event_id, "selected_participant_ids": []})


def toggle_participant(state: WizardState, participant_id: int) -> WizardState:
    ids = list(state.selected_participant_ids)
    if participant_id in ids:
        ids.remove(participant_id)
    else:
        ids.append(participant_id)
    return state.model_copy(update={"selected_participant_ids": ids})


def select_all(state: WizardState, available_ids: Iterable[int]) -> WizardState:
    available = list(dict.fromkeys(available_ids))
    if len(state.selected_participant_ids) == len(available) and set(state.selected_participant_ids) == set(available):
        return state.model_copy(update={"selected_participant_ids": []})
    return state.model_copy(update={"selected_participant_ids": available})


def set_campaign_type(state: WizardState, campaign_type: str) -> WizardState:
    update: dict = {"campaign_type": campaign_type}
    # troca o texto só se o usuário não editou a mensagem padrão
    if not state.message.strip() or state.message == DEFAULT_MESSAGES.get(state.campaign_type):
        update["message"] = DEFAULT_MESSAGES[campaign_type]
    return state.model_copy(update=update)


def update_fields(state: WizardState, **fields) -> WizardState:
    """Edição livre dos campos do formulário; chaves desconhecidas são ignoradas."""
    allowed = {"campaign_name", "message", "email_subject", "send_whatsapp", "send_email", "send_mode", "scheduled_at", "tab"}
    data = {k: v for k, v in fields.items() if k in allowed}
    try:
        return state.model_validate({**state.model_dump(), **data})
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or None
        raise ValidationFailed(f"Valor inválido para {field}.", details={"field": field})


def reset_after_send(state: WizardState) -> WizardState:
    """Depois do envio: formulário limpo e aba de histórico."""
    return initial_state(tab="history")


def default_campaign_name(state: WizardState, event_title: str) -> str:
    return state.campaign_name.strip() or f"{CAMPAIGN_TYPE_LABELS[state.campaign_type]} - {event_title}"
