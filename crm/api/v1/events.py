# crm/api/v1/events.py
from __future__ import annotations

import secrets
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import select

from crm.api.deps import get_context
from crm.core.clock import utcnow
from crm.core.context import RequestContext
from crm.core.errors import ConflictError, NotFoundError
from crm.core.rbac import ROLE_MANAGER, require_min_role
from crm.crud.client import client_crud
from crm.crud.event import event_crud, participant_crud
from crm.models.event import Event, EventParticipant
from crm.schemas.event import (
    EventCreate, EventOut, EventUpdate, ParticipantCreate, ParticipantOut, ParticipantUpdate,
)
from crm.services import checkin
from crm.services.campaigns import participant_contact

router = APIRouter()


def _participant_out(p: EventParticipant) -> ParticipantOut:
    contact = participant_contact(p)
    return ParticipantOut(id=p.id, event_id=p.event_id, client_id=p.client_id, name=contact["name"],
                          phone=contact["phone"], email=contact["email"], rsvp_status=p.rsvp_status,
                          rsvp_token=p.rsvp_token)


# ---------------------- relatório (antes de /{event_id}) ----------------------
@router.get("/attendance-report")
def attendance_report(product_id: Optional[int] = None, limit: int = Query(default=20, ge=1, le=200),
                      ctx: RequestContext = Depends(get_context)):
    return checkin.attendance_report(ctx.db, ctx.account_id, product_id=product_id, limit=limit)


@router.get("/attendance-report.csv")
def attendance_report_csv(product_id: Optional[int] = None, limit: int = Query(default=20, ge=1, le=200),
                          ctx: RequestContext = Depends(get_context)):
    report = checkin.attendance_report(ctx.db, ctx.account_id, product_id=product_id, limit=limit)
    filename = f"relatorio-presencas-{datetime.now().strftime('%Y-%m-%d')}.csv"
    return Response(
        content=checkin.report_csv(report["events"]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------- eventos ----------------------
@router.get("", response_model=List[EventOut])
def list_events(
    status_: Optional[str] = Query(default=None, alias="status"),
    modality: Optional[str] = None,
    upcoming: bool = False,
    ctx: RequestContext = Depends(get_context),
):
    stmt = select(Event).where(Event.account_id == ctx.account_id)
    if status_:
        stmt = stmt.where(Event.status == status_)
    if modality:
        stmt = stmt.where(Event.modality == modality)
    if upcoming:
        stmt = stmt.where(Event.scheduled_at >= utcnow())
    return ctx.db.scalars(stmt.order_by(Event.scheduled_at.desc())).all()


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(body: EventCreate, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    return event_crud.create(ctx.db, body, extra={"account_id": ctx.account_id})


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: int, ctx: RequestContext = Depends(get_context)):
    return event_crud.get_for_account(ctx.db, ctx.account_id, event_id)


@router.put("/{event_id}", response_model=EventOut)
def update_event(event_id: int, body: EventUpdate, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    e = event_crud.get_for_account(ctx.db, ctx.account_id, event_id)
    return event_crud.update(ctx.db, e, body)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(event_id: int, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    e = event_crud.get_for_account(ctx.db, ctx.account_id, event_id)
    event_crud.remove(ctx.db, e)


@router.get("/{event_id}/qr.png")
def event_qr(event_id: int, ctx: RequestContext = Depends(get_context)):
    e = event_crud.get_for_account(ctx.db, ctx.account_id, event_id)
    if not e.checkin_code:
        raise NotFoundError("Evento sem código de check-in")
    return Response(content=checkin.qr_png(e.checkin_code), media_type="image/png")


# ---------------------- participantes ----------------------
@router.get("/{event_id}/participants", response_model=List[ParticipantOut])
def list_participants(event_id: int, rsvp_status: Optional[str] = None, ctx: RequestContext = Depends(get_context)):
    e = event_crud.get_for_account(ctx.db, ctx.account_id, event_id)
    stmt = select(EventParticipant).where(EventParticipant.event_id == e.id)
    if rsvp_status:
        stmt = stmt.where(EventParticipant.rsvp_status == rsvp_status)
    return [_participant_out(p) for p in ctx.db.scalars(stmt.order_by(EventParticipant.id)).all()]


@router.post("/{event_id}/participants", response_model=ParticipantOut, status_code=status.HTTP_201_CREATED)
def add_participant(event_id: int, body: ParticipantCreate, ctx: RequestContext = Depends(get_context)):
    e = event_crud.get_for_account(ctx.db, ctx.account_id, event_id)
    if body.client_id is not None:
        client_crud.get_for_account(ctx.db, ctx.account_id, body.client_id)
        dup = ctx.db.scalar(select(EventParticipant.id).where(
            EventParticipant.event_id == e.id, EventParticipant.client_id == body.client_id))
        if dup is not None:
            raise ConflictError("Cliente já inscrito neste evento.")
    p = EventParticipant(event_id=e.id, rsvp_token=secrets.token_urlsafe(24), **body.model_dump())
    ctx.db.add(p)
    ctx.db.commit()
    ctx.db.refresh(p)
    return _participant_out(p)


def _participant(ctx: RequestContext, event_id: int, participant_id: int) -> EventParticipant:
    e = event_crud.get_for_account(ctx.db, ctx.account_id, event_id)
    p = participant_crud.get(ctx.db, participant_id)
    if p is None or p.event_id != e.id:
        raise NotFoundError("Participante não encontrado")
    return p


@router.put("/{event_id}/participants/{participant_id}", response_model=ParticipantOut)
def update_participant(event_id: int, participant_id: int, body: ParticipantUpdate,
                       ctx: RequestContext = Depends(get_context)):
    p = _participant(ctx, event_id, participant_id)
    p.rsvp_status = body.rsvp_status
    ctx.db.commit()
    ctx.db.refresh(p)
    return _participant_out(p)


@router.delete("/{event_id}/participants/{participant_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_participant(event_id: int, participant_id: int, ctx: RequestContext = Depends(get_context)):
    p = _participant(ctx, event_id, participant_id)
    participant_crud.remove(ctx.db, p)
