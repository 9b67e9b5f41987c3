# crm/services/checkin.py
"""
Check-in presencial por código de evento e relatório de presenças.

O código tem 6 caracteres [A-Z0-9] e só existe para eventos presenciais.
O QR aponta para ``{APP_URL}/checkin/{code}``.
"""
from __future__ import annotations

import csv
import io
import re
import secrets
import string
from datetime import datetime
from typing import Iterable, Optional

import qrcode
import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from crm.core.clock import utcnow
from crm.core.config import settings
from crm.core.errors import NotFoundError, ValidationFailed
from crm.core.validators import only_digits
from crm.models.client import Client
from crm.models.event import Attendance, Event, EventParticipant
from crm.services.messages import event_date_label

log = structlog.get_logger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6
_CODE_RE = re.compile(r"^[A-Z0-9]{6}$")
_UNSAFE = re.compile(r"[<>'\"&]")

CSV_HEADERS = ["Evento", "Data", "Local", "Esperados", "Presentes", "Taxa"]


# ----------------------------------------------------------------------
# Código
# ----------------------------------------------------------------------
def generate_code(db: Session) -> str:
    while True:
        code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
        if db.scalar(select(Event.id).where(Event.checkin_code == code)) is None:
            return code


def sanitize(value: str) -> str:
    return _UNSAFE.sub("", value or "").strip()


def normalize_code(raw: str) -> str:
    code = sanitize(raw).upper()
    if not _CODE_RE.match(code):
        raise ValidationFailed("Código do evento inválido")
    return code


def sync_code(db: Session, event: Event) -> None:
    """Presencial ganha código; online perde."""
    if event.modality == "presencial":
        if not event.checkin_code:
            event.checkin_code = generate_code(db)
    else:
        event.checkin_code = None


def checkin_url(code: str) -> str:
    return f"{settings.APP_URL}/checkin/{code}"


def qr_png(code: str) -> bytes:
    img = qrcode.make(checkin_url(code))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


# ----------------------------------------------------------------------
# Rotas públicas
# ----------------------------------------------------------------------
def find_event(db: Session, raw_code: Optional[str]) -> Event:
    if not raw_code:
        raise ValidationFailed("Código do evento não informado")
    code = normalize_code(raw_code)
    event = db.scalar(select(Event).where(Event.checkin_code == code, Event.modality == "presencial"))
    if event is None:
        raise NotFoundError("Evento não encontrado")
    return event


def phone_for_checkin(raw: str) -> str:
    digits = only_digits(sanitize(raw))
    if not 10 <= len(digits) <= 15:
        raise ValidationFailed("Telefone inválido")
    return f"+{digits}" if digits.startswith("55") else f"+55{digits}"


def register(db: Session, raw_code: Optional[str], raw_phone: Optional[str],
             now: Optional[datetime] = None) -> dict:
    if not raw_code or not raw_phone:
        raise ValidationFailed("Código do evento e telefone são obrigatórios")
    event = find_event(db, raw_code)
    phone = phone_for_checkin(raw_phone)

    client = db.scalar(
        select(Client).where(Client.account_id == event.account_id, Client.phone_e164 == phone).order_by(Client.id)
    )
    if client is None:
        raise NotFoundError("Cliente não encontrado. Verifique se o telefone está cadastrado.")

    existing = db.scalar(select(Attendance).where(Attendance.event_id == event.id, Attendance.client_id == client.id))
    if existing is not None:
        return {
            "success": True,
            "message": "Você já fez check-in neste evento!",
            "client_name": client.full_name,
            "event_title": event.title,
            "already_checked_in": True,
        }

    db.add(Attendance(event_id=event.id, client_id=client.id, join_time=now or utcnow(), source="checkin"))
    # participante inscrito passa a "attended"
    participant = db.scalar(
        select(EventParticipant).where(EventParticipant.event_id == event.id, EventParticipant.client_id == client.id)
    )
    if participant is not None:
        participant.rsvp_status = "attended"
    db.commit()
    log.info("checkin.registered", event_id=event.id, client_id=client.id)
    return {
        "success": True,
        "message": "Check-in realizado com sucesso!",
        "client_name": client.full_name,
        "event_title": event.title,
        "already_checked_in": False,
    }


# ----------------------------------------------------------------------
# Relatório de presenças
# ----------------------------------------------------------------------
def participation_rate(expected: int, attended: int) -> int:
    if expected > 0:
        return round(attended / expected * 100)
    return 100 if attended > 0 else 0


def attendance_report(db: Session, account_id: int, product_id: Optional[int] = None, limit: int = 20) -> dict:
    stmt = (
        select(Event)
        .where(Event.account_id == account_id, Event.modality == "presencial")
        .order_by(Event.scheduled_at.desc())
        .limit(limit)
    )
    events = list(db.scalars(stmt).all())
    if product_id is not None:
        events = [e for e in events if any(p.id == product_id for p in e.products)]

    rows = []
    for event in events:
        expected = db.scalar(
            select(func.count(EventParticipant.id)).where(
                EventParticipant.event_id == event.id, EventParticipant.rsvp_status != "declined"
            )
        ) or 0
        attended = db.scalar(select(func.count(Attendance.id)).where(Attendance.event_id == event.id)) or 0
        rows.append({
            "id": event.id,
            "title": event.title,
            "scheduled_at": event.scheduled_at,
            "address": event.address,
            "checkin_code": event.checkin_code,
            "total_expected": expected,
            "total_attended": attended,
            "participation_rate": participation_rate(expected, attended),
            "products": [{"id": p.id, "name": p.name} for p in event.products],
        })

    total_expected = sum(r["total_expected"] for r in rows)
    total_attended = sum(r["total_attended"] for r in rows)
    return {
        "events": rows,
        "total_events": len(rows),
        "total_expected": total_expected,
        "total_attended": total_attended,
        "overall_rate": participation_rate(total_expected, total_attended),
    }


def report_csv(rows: Iterable[dict]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for r in rows:
        writer.writerow([
            r["title"],
            event_date_label(r["scheduled_at"]) or "-",
            r["address"] or "-",
            str(r["total_expected"]),
            str(r["total_attended"]),
            f"{r['participation_rate']}%",
        ])
    return buf.getvalue()
