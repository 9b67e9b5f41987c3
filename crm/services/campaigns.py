# crm/services/campaigns.py
"""
Campanhas de lembrete: criação, envio sequencial, agendamento e reenvio.

O envio roda fora da requisição (BackgroundTasks / rota de cron) com sessão
própria. Cada destinatário tem status independente por canal:

    pending -> queued -> sending -> sent | failed -> responded
"""
from __future__ import annotations

import random
import time
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

import structlog
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from crm.core.clock import as_utc, utcnow
from crm.core.config import settings
from crm.core.errors import (
    InvalidTransition, NotFoundError, NotificationError, ValidationFailed,
)
from crm.db.session import SessionLocal
from crm.models.campaign import ReminderCampaign, ReminderRecipient
from crm.models.event import Event, EventParticipant
from crm.services import campaign_wizard as wizard
from crm.services.messages import personalize, render_email_html
from crm.services.notifiers.registry import NotifierFactory

log = structlog.get_logger(__name__)

SCHEDULED_BATCH = 5


# ----------------------------------------------------------------------
# Destinatários
# ----------------------------------------------------------------------
def participant_contact(p: EventParticipant) -> dict:
    if p.client is not None:
        emails = p.client.emails or []
        email = next((e.get("email") for e in emails if e.get("email")), None)
        return {"name": p.client.full_name, "phone": p.client.phone_e164 or None, "email": email,
                "client_id": p.client_id}
    return {"name": p.guest_name or "Convidado", "phone": p.guest_phone or None, "email": p.guest_email or None,
            "client_id": None}


def load_participants(db: Session, event: Event, participant_ids: Sequence[int]) -> list[EventParticipant]:
    rows = db.scalars(
        select(EventParticipant).where(EventParticipant.event_id == event.id, EventParticipant.id.in_(participant_ids))
    ).all()
    by_id = {p.id: p for p in rows}
    missing = [i for i in participant_ids if i not in by_id]
    if missing:
        raise ValidationFailed("Participantes não pertencem ao evento.", details={"ids": missing})
    # mantém a ordem da seleção (vira send_order)
    return [by_id[i] for i in participant_ids]


def initial_status(channel_enabled: bool, contact: Optional[str]) -> str:
    return "queued" if channel_enabled and contact else "pending"


def _build_campaign(account_id: int, user_id: Optional[int], event: Event, participants: Sequence[EventParticipant], *,
                    name: str, campaign_type: str, message_template: str, email_subject: Optional[str],
                    send_whatsapp: bool, send_email: bool, status: str,
                    scheduled_at: Optional[datetime] = None) -> ReminderCampaign:
    if not participants:
        raise ValidationFailed("Selecione ao menos um participante.")
    if not message_template.strip():
        raise ValidationFailed("A mensagem não pode ficar vazia.")
    if not (send_whatsapp or send_email):
        raise ValidationFailed("Escolha ao menos um canal de envio.")

    campaign = ReminderCampaign(
        account_id=account_id,
        event_id=event.id,
        created_by=user_id,
        name=name,
        campaign_type=campaign_type,
        message_template=message_template,
        email_subject=email_subject or name,
        send_whatsapp=send_whatsapp,
        send_email=send_email,
        status=status,
        scheduled_at=scheduled_at,
        total_recipients=len(participants),
        delay_min_seconds=settings.REMINDER_DELAY_MIN_SECONDS,
        delay_max_seconds=settings.REMINDER_DELAY_MAX_SECONDS,
    )
    for order, participant in enumerate(participants):
        contact = participant_contact(participant)
        campaign.recipients.append(ReminderRecipient(
            participant_id=participant.id,
            client_id=contact["client_id"],
            name=contact["name"],
            phone=contact["phone"],
            email=contact["email"],
            send_order=order,
            whatsapp_status=initial_status(send_whatsapp, contact["phone"]),
            email_status=initial_status(send_email, contact["email"]),
        ))
    return campaign


def create_sending_campaign(db: Session, account_id: int, user_id: Optional[int], event: Event,
                            participants: Sequence[EventParticipant], **fields) -> ReminderCampaign:
    campaign = _build_campaign(account_id, user_id, event, participants, status="sending", **fields)
    campaign.started_at = utcnow()
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    log.info("campaign.created", campaign_id=campaign.id, recipients=campaign.total_recipients, status="sending")
    return campaign


def create_scheduled_campaign(db: Session, account_id: int, user_id: Optional[int], event: Event,
                              participants: Sequence[EventParticipant], scheduled_at: Optional[datetime],
                              **fields) -> ReminderCampaign:
    if scheduled_at is None or as_utc(scheduled_at) <= utcnow():
        raise ValidationFailed("Escolha uma data futura para o agendamento.")
    campaign = _build_campaign(account_id, user_id, event, participants, status="scheduled",
                               scheduled_at=as_utc(scheduled_at), **fields)
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    log.info("campaign.scheduled", campaign_id=campaign.id, scheduled_at=str(campaign.scheduled_at))
    return campaign


# ----------------------------------------------------------------------
# Envio
# ----------------------------------------------------------------------
class _Senders:
    """Resolve os provedores uma vez por campanha; guarda o erro de configuração."""

    def __init__(self, db: Session, factory: NotifierFactory, campaign: ReminderCampaign) -> None:
        self.whatsapp = self.whatsapp_error = None
        self.email = self.email_error = None
        if campaign.send_whatsapp:
            try:
                self.whatsapp = factory.whatsapp(db, campaign.account_id)
            except NotificationError as exc:
                self.whatsapp_error = exc
        if campaign.send_email:
            try:
                self.email = factory.email()
            except NotificationError as exc:
                self.email_error = exc


def _send_channel(sender, setup_error: Optional[NotificationError], *args) -> Optional[str]:
    """Envia por um canal; devolve o texto do erro ou None quando deu certo."""
    if setup_error is not None:
        return setup_error.message
    try:
        sender.send(*args)
    except NotificationError as exc:
        return exc.message
    except Exception as exc:  # erro inesperado do provedor: falha só este canal
        log.exception("campaign.send_unexpected_error")
        return str(exc) or exc.__class__.__name__
    return None


def _deliver(db: Session, campaign: ReminderCampaign, event: Event, recipient: ReminderRecipient,
             senders: _Senders, channels: Iterable[str] = ("whatsapp", "email")) -> tuple[int, int]:
    channels = set(channels)
    do_whatsapp = "whatsapp" in channels and campaign.send_whatsapp and bool(recipient.phone)
    do_email = "email" in channels and campaign.send_email and bool(recipient.email)
    if not (do_whatsapp or do_email):
        return 0, 0

    if do_whatsapp:
        recipient.whatsapp_status = "sending"
    if do_email:
        recipient.email_status = "sending"
    db.commit()

    message = personalize(
        campaign.message_template,
        name=recipient.name,
        event_title=event.title,
        event_id=event.id,
        scheduled_at=event.scheduled_at,
        checkin_code=event.checkin_code,
        participant_id=recipient.participant_id,
    )
    sent = failed = 0

    if do_whatsapp:
        error = _send_channel(senders.whatsapp, senders.whatsapp_error, recipient.phone, message)
        if error is None:
            recipient.whatsapp_status, recipient.whatsapp_sent_at, recipient.whatsapp_error = "sent", utcnow(), None
            sent += 1
        else:
            recipient.whatsapp_status, recipient.whatsapp_error = "failed", error
            failed += 1
            log.warning("campaign.whatsapp_failed", campaign_id=campaign.id, recipient_id=recipient.id, error=error)

    if do_email:
        subject = campaign.email_subject or campaign.name
        error = _send_channel(senders.email, senders.email_error, recipient.email, subject,
                              render_email_html(subject, message))
        if error is None:
            recipient.email_status, recipient.email_sent_at, recipient.email_error = "sent", utcnow(), None
            sent += 1
        else:
            recipient.email_status, recipient.email_error = "failed", error
            failed += 1
            log.warning("campaign.email_failed", campaign_id=campaign.id, recipient_id=recipient.id, error=error)

    db.commit()
    return sent, failed


def _pause(campaign: ReminderCampaign, sleep: Callable[[float], None]) -> None:
    low = max(0, campaign.delay_min_seconds or 0)
    high = max(low, campaign.delay_max_seconds or 0)
    if high > 0:
        sleep(random.uniform(low, high))


def _run(db: Session, campaign: ReminderCampaign, recipients: Sequence[ReminderRecipient], factory: NotifierFactory,
         sleep: Callable[[float], None], channels: Iterable[str] = ("whatsapp", "email")) -> None:
    event = db.get(Event, campaign.event_id)
    senders = _Senders(db, factory, campaign)
    for i, recipient in enumerate(recipients):
        # intervalo "humano" entre mensagens, exceto antes da primeira
        if i > 0:
            _pause(campaign, sleep)
        sent, failed = _deliver(db, campaign, event, recipient, senders, channels)
        campaign.sent_count += sent
        campaign.failed_count += failed
        db.commit()


def process_campaign(campaign_id: int, factory: NotifierFactory,
                     session_factory: Callable[[], Session] = SessionLocal,
                     sleep: Callable[[float], None] = time.sleep) -> None:
    """Envia para os destinatários em ``send_order`` e marca a campanha como concluída."""
    with session_factory() as db:
        campaign = db.get(ReminderCampaign, campaign_id)
        if campaign is None or campaign.status != "sending":
            return
        log.info("campaign.processing", campaign_id=campaign_id, recipients=len(campaign.recipients))
        pending = [r for r in campaign.recipients
                   if r.whatsapp_status in ("queued", "pending") or r.email_status in ("queued", "pending")]
        try:
            _run(db, campaign, pending, factory, sleep)
        except Exception:
            db.rollback()
            log.exception("campaign.processing_failed", campaign_id=campaign_id)
            raise
        finally:
            campaign.status = "completed"
            campaign.completed_at = utcnow()
            db.commit()
        log.info("campaign.completed", campaign_id=campaign_id,
                 sent=campaign.sent_count, failed=campaign.failed_count)


def due_campaigns(db: Session, now: Optional[datetime] = None, limit: int = SCHEDULED_BATCH) -> list[ReminderCampaign]:
    now = now or utcnow()
    stmt = (
        select(ReminderCampaign)
        .where(ReminderCampaign.status == "scheduled", ReminderCampaign.scheduled_at <= now)
        .order_by(ReminderCampaign.scheduled_at)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


def claim_due(db: Session, now: Optional[datetime] = None) -> list[int]:
    """Passa as agendadas vencidas para ``sending``; devolve os ids a processar."""
    ids = []
    for campaign in due_campaigns(db, now):
        campaign.status = "sending"
        campaign.started_at = utcnow()
        ids.append(campaign.id)
    db.commit()
    if ids:
        log.info("campaign.due_claimed", ids=ids)
    return ids


def process_scheduled(factory: NotifierFactory, session_factory: Callable[[], Session] = SessionLocal,
                      sleep: Callable[[float], None] = time.sleep, now: Optional[datetime] = None) -> list[int]:
    """Dispara as campanhas agendadas vencidas."""
    with session_factory() as db:
        ids = claim_due(db, now)
    for campaign_id in ids:
        process_campaign(campaign_id, factory, session_factory, sleep)
    return ids


def retry_failed(campaign_id: int, factory: NotifierFactory, *, retry_whatsapp: bool = True, retry_email: bool = True,
                 session_factory: Callable[[], Session] = SessionLocal,
                 sleep: Callable[[float], None] = time.sleep) -> int:
    channels = [c for c, on in (("whatsapp", retry_whatsapp), ("email", retry_email)) if on]
    with session_factory() as db:
        campaign = db.get(ReminderCampaign, campaign_id)
        if campaign is None:
            return 0
        failed = [r for r in campaign.recipients
                  if ("whatsapp" in channels and r.whatsapp_status == "failed")
                  or ("email" in channels and r.email_status == "failed")]
        if not failed:
            return 0
        # a falha anterior deixa de contar; o reenvio recontabiliza
        for r in failed:
            if "whatsapp" in channels and r.whatsapp_status == "failed":
                r.whatsapp_status = "queued"
                campaign.failed_count = max(0, campaign.failed_count - 1)
            if "email" in channels and r.email_status == "failed":
                r.email_status = "queued"
                campaign.failed_count = max(0, campaign.failed_count - 1)
        db.commit()
        _run(db, campaign, failed, factory, sleep, channels)
        log.info("campaign.retried", campaign_id=campaign_id, recipients=len(failed))
        return len(failed)


def failed_recipients_count(db: Session, campaign_id: int) -> int:
    stmt = select(ReminderRecipient.id).where(
        ReminderRecipient.campaign_id == campaign_id,
        or_(ReminderRecipient.whatsapp_status == "failed", ReminderRecipient.email_status == "failed"),
    )
    return len(db.scalars(stmt).all())


# ----------------------------------------------------------------------
# Pós-envio
# ----------------------------------------------------------------------
def cancel(db: Session, campaign: ReminderCampaign) -> ReminderCampaign:
    if campaign.status not in ("draft", "scheduled"):
        raise InvalidTransition("Só campanhas agendadas podem ser canceladas.")
    campaign.status = "cancelled"
    db.commit()
    db.refresh(campaign)
    return campaign


def mark_responded(db: Session, recipient: ReminderRecipient, response_data: Optional[dict] = None) -> ReminderRecipient:
    campaign = recipient.campaign
    if recipient.responded_at is None:
        campaign.responded_count += 1
    recipient.responded_at = utcnow()
    recipient.response_data = response_data or {}
    if recipient.whatsapp_status == "sent":
        recipient.whatsapp_status = "responded"
    if recipient.email_status == "sent":
        recipient.email_status = "responded"

    rsvp = (response_data or {}).get("rsvp_status")
    if rsvp and recipient.participant_id:
        participant = db.get(EventParticipant, recipient.participant_id)
        if participant is not None:
            participant.rsvp_status = rsvp
    db.commit()
    db.refresh(recipient)
    return recipient


# ----------------------------------------------------------------------
# Etapa final do assistente
# ----------------------------------------------------------------------
def submit_wizard(db: Session, account_id: int, user_id: Optional[int],
                  state: wizard.WizardState) -> tuple[wizard.WizardState, ReminderCampaign]:
    """
    Executa o "Enviar" da revisão. Em sucesso devolve o assistente zerado
    (aba histórico) e a campanha criada; em erro levanta ``CRMError`` e o
    estado de quem chamou continua valendo.
    """
    if state.step != "review":
        raise ValidationFailed("Conclua as etapas anteriores antes de enviar.")
    for step in wizard.STEPS[:-1]:
        if not wizard.can_proceed(state.model_copy(update={"step": step})):
            raise ValidationFailed(f"Etapa incompleta: {wizard.STEP_LABELS[step]}.", details={"step": step})

    event = db.get(Event, state.event_id)
    if event is None or event.account_id != account_id:
        raise NotFoundError("Evento não encontrado")
    participants = load_participants(db, event, state.selected_participant_ids)
    fields = dict(
        name=wizard.default_campaign_name(state, event.title),
        campaign_type=state.campaign_type,
        message_template=state.message,
        email_subject=state.email_subject or None,
        send_whatsapp=state.send_whatsapp,
        send_email=state.send_email,
    )
    if state.send_mode == "scheduled":
        campaign = create_scheduled_campaign(db, account_id, user_id, event, participants,
                                             scheduled_at=state.scheduled_at, **fields)
    else:
        campaign = create_sending_campaign(db, account_id, user_id, event, participants, **fields)
    return wizard.reset_after_send(state), campaign
