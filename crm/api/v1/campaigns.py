# crm/api/v1/campaigns.py
from __future__ import annotations

from typing import List, Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy import select

from crm.api.deps import get_context
from crm.core.context import RequestContext
from crm.core.errors import CRMError, ValidationFailed
from crm.crud.campaign import campaign_crud
from crm.crud.event import event_crud
from crm.models.campaign import ReminderCampaign
from crm.models.event import EventParticipant
from crm.schemas.campaign import (
    CampaignCreate, CampaignDetail, CampaignOut, RecipientOut, RespondIn, RetryIn, Toast, WizardIn, WizardOut,
)
from crm.services import campaign_wizard as wizard
from crm.services import campaigns as svc
from crm.services.messages import event_date_label
from crm.services.notifiers.registry import NotifierFactory, get_notifier_factory

log = structlog.get_logger(__name__)

router = APIRouter()


def _dispatch(background: BackgroundTasks, campaign: ReminderCampaign, factory: NotifierFactory) -> None:
    if campaign.status == "sending":
        background.add_task(svc.process_campaign, campaign.id, factory)


def _created_toast(campaign: ReminderCampaign) -> Toast:
    if campaign.status == "scheduled":
        return Toast(kind="success", message=f"Campanha agendada para {event_date_label(campaign.scheduled_at)}.")
    return Toast(kind="success", message=f"Campanha criada! Enviando {campaign.total_recipients} mensagens...")


# ---------------------- assistente ----------------------
@router.post("/wizard", response_model=WizardOut)
def wizard_step(
    body: WizardIn,
    background: BackgroundTasks,
    ctx: RequestContext = Depends(get_context),
    factory: NotifierFactory = Depends(get_notifier_factory),
):
    """Recebe o estado atual + uma ação e devolve o próximo estado."""
    state = body.state
    action = body.action

    if action == "send":
        try:
            new_state, campaign = svc.submit_wizard(ctx.db, ctx.account_id, ctx.user.id, state)
        except CRMError as exc:
            # o formulário continua como estava
            log.info("campaign.wizard_send_failed", code=exc.code, message=exc.message)
            return JSONResponse(status_code=exc.status_code,
                                content={**exc.to_dict(), "state": state.model_dump(mode="json")})
        _dispatch(background, campaign, factory)
        return WizardOut(state=new_state, can_proceed=wizard.can_proceed(new_state),
                         campaign_id=campaign.id, toast=_created_toast(campaign))

    try:
        state = _apply_action(ctx, body)
    except CRMError as exc:
        return JSONResponse(status_code=exc.status_code,
                            content={**exc.to_dict(), "state": body.state.model_dump(mode="json")})
    return WizardOut(state=state, can_proceed=wizard.can_proceed(state))


def _required(value, name: str):
    if value is None:
        raise ValidationFailed(f"Parâmetro obrigatório ausente: {name}.", details={"field": name})
    return value


def _apply_action(ctx: RequestContext, body: WizardIn) -> wizard.WizardState:
    state = body.state
    action = body.action
    if action == "next":
        return wizard.next_step(state)
    if action == "prev":
        return wizard.prev_step(state)
    if action == "go_to":
        return wizard.go_to_step(state, body.step or state.step)
    if action == "select_event":
        if body.event_id is not None:
            event_crud.get_for_account(ctx.db, ctx.account_id, body.event_id)
        return wizard.select_event(state, body.event_id)
    if action == "toggle_participant":
        return wizard.toggle_participant(state, _required(body.participant_id, "participant_id"))
    if action == "select_all":
        event = event_crud.get_for_account(ctx.db, ctx.account_id, _required(state.event_id, "event_id"))
        ids = ctx.db.scalars(
            select(EventParticipant.id).where(EventParticipant.event_id == event.id).order_by(EventParticipant.id)
        ).all()
        return wizard.select_all(state, ids)
    if action == "set_type":
        return wizard.set_campaign_type(state, _required(body.campaign_type, "campaign_type"))
    if action == "update":
        return wizard.update_fields(state, **body.fields)
    if action == "reset":
        return wizard.initial_state(tab=state.tab)
    return state


# ---------------------- campanhas ----------------------
@router.post("", response_model=CampaignOut, status_code=status.HTTP_201_CREATED)
def create_campaign(
    body: CampaignCreate,
    background: BackgroundTasks,
    ctx: RequestContext = Depends(get_context),
    factory: NotifierFactory = Depends(get_notifier_factory),
):
    event = event_crud.get_for_account(ctx.db, ctx.account_id, body.event_id)
    participants = svc.load_participants(ctx.db, event, body.participant_ids)
    fields = body.model_dump(exclude={"event_id", "participant_ids", "scheduled_at"})
    if body.scheduled_at is not None:
        campaign = svc.create_scheduled_campaign(ctx.db, ctx.account_id, ctx.user.id, event, participants,
                                                 scheduled_at=body.scheduled_at, **fields)
    else:
        campaign = svc.create_sending_campaign(ctx.db, ctx.account_id, ctx.user.id, event, participants, **fields)
    _dispatch(background, campaign, factory)
    return campaign


@router.get("", response_model=List[CampaignOut])
def history(event_id: Optional[int] = None, status_: Optional[str] = Query(default=None, alias="status"),
            limit: int = Query(default=50, ge=1, le=200),
            ctx: RequestContext = Depends(get_context)):
    return campaign_crud.history(ctx.db, ctx.account_id, event_id=event_id, status=status_, limit=limit)


@router.get("/{campaign_id}", response_model=CampaignDetail)
def get_campaign(campaign_id: int, ctx: RequestContext = Depends(get_context)):
    return campaign_crud.get_for_account(ctx.db, ctx.account_id, campaign_id)


@router.post("/{campaign_id}/retry")
def retry(
    campaign_id: int,
    body: RetryIn,
    background: BackgroundTasks,
    ctx: RequestContext = Depends(get_context),
    factory: NotifierFactory = Depends(get_notifier_factory),
):
    campaign = campaign_crud.get_for_account(ctx.db, ctx.account_id, campaign_id)
    count = svc.failed_recipients_count(ctx.db, campaign.id)
    if count:
        background.add_task(svc.retry_failed, campaign.id, factory,
                            retry_whatsapp=body.retry_whatsapp, retry_email=body.retry_email)
    return {"retrying": count}


@router.post("/{campaign_id}/cancel", response_model=CampaignOut)
def cancel(campaign_id: int, ctx: RequestContext = Depends(get_context)):
    campaign = campaign_crud.get_for_account(ctx.db, ctx.account_id, campaign_id)
    return svc.cancel(ctx.db, campaign)


@router.post("/{campaign_id}/recipients/{recipient_id}/respond", response_model=RecipientOut)
def respond(campaign_id: int, recipient_id: int, body: RespondIn, ctx: RequestContext = Depends(get_context)):
    recipient = campaign_crud.recipient(ctx.db, ctx.account_id, campaign_id, recipient_id)
    return svc.mark_responded(ctx.db, recipient, body.response_data)
