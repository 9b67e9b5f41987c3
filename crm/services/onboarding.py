# crm/services/onboarding.py
"""
Onboarding em 6 passos (conta, IA, primeiro cliente, primeiro produto,
primeiro evento, equipe). O progresso fica em ``Account.onboarding_data``:

    {"data": {...}, "skipped": [3], "completed": [1, 2], "achievements": {...}}

A conclusão cria os registros iniciais dos passos não pulados.
"""
from __future__ import annotations

import re
import secrets
from datetime import datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.clock import utcnow
from crm.core.config import settings
from crm.core.errors import ConflictError, ValidationFailed
from crm.core.security_password import hash_password
from crm.core.validators import only_digits, validate_email
from crm.models.account import Account
from crm.models.client import Client
from crm.models.event import Event
from crm.models.product import Product
from crm.models.user import Role, User
from crm.services.achievements import AchievementTracker
from crm.services.checkin import sync_code

log = structlog.get_logger(__name__)

TOTAL_STEPS = 6
SKIPPABLE = frozenset({3, 4, 5, 6})

STEP_TITLES = {
    1: "Sua empresa",
    2: "Inteligência artificial",
    3: "Primeiro cliente",
    4: "Primeiro produto",
    5: "Primeiro evento",
    6: "Equipe",
}

DEFAULT_DATA: dict[str, Any] = {
    "accountName": "",
    "welcomeMessage": "",
    "enableAI": True,
    "clientName": "",
    "clientPhone": "",
    "clientEmail": "",
    "productName": "",
    "productDescription": "",
    "productPrice": "",
    "eventTitle": "",
    "eventType": "live",
    "eventModality": "online",
    "eventDate": "",
    "eventTime": "",
    "eventMeetingUrl": "",
    "eventAddress": "",
    "inviteEmails": "",
}


# ----------------------------------------------------------------------
# Estado persistido
# ----------------------------------------------------------------------
def _stored(account: Account) -> dict:
    raw = dict(account.onboarding_data or {})
    data = {**DEFAULT_DATA, "accountName": account.name, **(raw.get("data") or {})}
    return {
        "data": data,
        "skipped": sorted(set(raw.get("skipped") or [])),
        "completed": sorted(set(raw.get("completed") or [])),
        "achievements": raw.get("achievements") or {},
    }


def _save(db: Session, account: Account, stored: dict, tracker: AchievementTracker) -> None:
    stored["achievements"] = tracker.to_state()
    # JSON mutável: reatribui para o SQLAlchemy enxergar a mudança
    account.onboarding_data = dict(stored)
    db.commit()
    db.refresh(account)


def state(account: Account) -> dict:
    stored = _stored(account)
    tracker = AchievementTracker.from_state(stored["achievements"])
    return {
        "step": account.onboarding_step,
        "total_steps": TOTAL_STEPS,
        "title": STEP_TITLES.get(account.onboarding_step),
        "progress": round(account.onboarding_step / TOTAL_STEPS * 100),
        "can_skip": account.onboarding_step in SKIPPABLE,
        "completed": account.onboarding_completed,
        "skipped_steps": stored["skipped"],
        "completed_steps": stored["completed"],
        "data": stored["data"],
        "achievements": tracker.summary(),
        "unlocked_count": tracker.unlocked_count,
        "total_achievements": tracker.total_count,
        "pending_achievement": tracker.pending_notification,
    }


def _ensure_open(account: Account) -> None:
    if account.onboarding_completed:
        raise ConflictError("Onboarding já concluído.")


def update_data(db: Session, account: Account, patch: dict) -> dict:
    _ensure_open(account)
    stored = _stored(account)
    stored["data"].update({k: v for k, v in patch.items() if k in DEFAULT_DATA})
    tracker = AchievementTracker.from_state(stored["achievements"])
    tracker.evaluate(stored["data"], stored["completed"])
    _save(db, account, stored, tracker)
    return state(account)


# ----------------------------------------------------------------------
# Navegação
# ----------------------------------------------------------------------
def next_step(db: Session, account: Account, *, skipped: bool = False) -> dict:
    _ensure_open(account)
    stored = _stored(account)
    current = account.onboarding_step
    if not skipped and current not in stored["completed"]:
        stored["completed"] = sorted({*stored["completed"], current})
    tracker = AchievementTracker.from_state(stored["achievements"])

    if current >= TOTAL_STEPS:
        tracker.evaluate(stored["data"], stored["completed"])
        _save(db, account, stored, tracker)
        complete(db, account)
        return state(account)

    account.onboarding_step = current + 1
    tracker.evaluate(stored["data"], stored["completed"])
    _save(db, account, stored, tracker)
    return state(account)


def prev_step(db: Session, account: Account) -> dict:
    _ensure_open(account)
    if account.onboarding_step > 1:
        account.onboarding_step -= 1
        db.commit()
        db.refresh(account)
    return state(account)


def skip_step(db: Session, account: Account) -> dict:
    _ensure_open(account)
    current = account.onboarding_step
    if current not in SKIPPABLE:
        raise ValidationFailed("Este passo não pode ser pulado.")
    stored = _stored(account)
    stored["skipped"] = sorted({*stored["skipped"], current})
    stored["completed"] = [s for s in stored["completed"] if s != current]
    account.onboarding_data = dict(stored)
    db.commit()
    db.refresh(account)
    return next_step(db, account, skipped=True)


def dismiss_achievement(db: Session, account: Account) -> dict:
    stored = _stored(account)
    tracker = AchievementTracker.from_state(stored["achievements"])
    tracker.dismiss()
    _save(db, account, stored, tracker)
    return state(account)


# ----------------------------------------------------------------------
# Conclusão
# ----------------------------------------------------------------------
def onboarding_phone(raw: str) -> str:
    digits = only_digits(raw)
    return f"+{digits}" if digits.startswith("55") else f"+55{digits}"


def parse_price(raw: Any) -> Decimal:
    """'R$ 1.234,56' -> 1234.56; vazio ou inválido -> 0"""
    text = re.sub(r"[^\d.,]", "", str(raw or ""))
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        return Decimal(text) if text else Decimal(0)
    except InvalidOperation:
        return Decimal(0)


def event_start(date_str: str, time_str: Optional[str]) -> datetime:
    try:
        day = datetime.strptime(date_str, "%Y-%m-%d").date()
        at = datetime.strptime(time_str, "%H:%M").time() if time_str else time(9, 0)
    except ValueError:
        raise ValidationFailed("Data ou horário do evento inválido.")
    return datetime.combine(day, at, tzinfo=ZoneInfo(settings.TIMEZONE))


def invite_emails(raw: str) -> list[str]:
    return [e.strip().lower() for e in (raw or "").split(",") if e.strip()]


def _invite(db: Session, account: Account, emails: list[str]) -> list[User]:
    member = db.scalar(select(Role).where(Role.name == "member"))
    invited = []
    for email in emails:
        if not validate_email(email):
            log.warning("onboarding.invite_skipped", email=email, reason="invalid")
            continue
        exists = db.scalar(select(User.id).where(User.account_id == account.id, User.email == email))
        if exists is not None:
            continue
        # senha aleatória: o convidado define a sua no primeiro acesso
        user = User(account_id=account.id, name=email.split("@")[0], email=email,
                    hashed_password=hash_password(secrets.token_urlsafe(16)), status="invited")
        if member is not None:
            user.roles.append(member)
        db.add(user)
        invited.append(user)
    return invited


def complete(db: Session, account: Account) -> dict:
    stored = _stored(account)
    data, skipped = stored["data"], set(stored["skipped"])
    created: dict[str, Any] = {}

    if (data.get("accountName") or "").strip():
        account.name = data["accountName"].strip()
    if data.get("welcomeMessage"):
        account.welcome_message = data["welcomeMessage"]
    account.ai_analysis_enabled = bool(data.get("enableAI"))
    account.onboarding_completed = True
    account.onboarding_step = TOTAL_STEPS
    account.config_json = {**(account.config_json or {}), "onboarding_completed_at": utcnow().isoformat()}

    if data.get("clientName") and data.get("clientPhone") and 3 not in skipped:
        client = Client(
            account_id=account.id,
            full_name=data["clientName"],
            phone_e164=onboarding_phone(data["clientPhone"]),
            emails=[{"email": data["clientEmail"], "type": "main"}] if data.get("clientEmail") else [],
            status="active",
        )
        db.add(client)
        created["client"] = client

    if data.get("productName") and 4 not in skipped:
        product = Product(
            account_id=account.id,
            name=data["productName"],
            description=data.get("productDescription") or None,
            price=parse_price(data.get("productPrice")),
            is_active=True,
        )
        db.add(product)
        created["product"] = product

    if data.get("eventTitle") and data.get("eventDate") and 5 not in skipped:
        modality = data.get("eventModality") or "online"
        event = Event(
            account_id=account.id,
            title=data["eventTitle"],
            event_type=data.get("eventType") or "live",
            modality=modality,
            scheduled_at=event_start(data["eventDate"], data.get("eventTime")),
            meeting_url=(data.get("eventMeetingUrl") or None) if modality == "online" else None,
            address=(data.get("eventAddress") or None) if modality == "presencial" else None,
        )
        sync_code(db, event)
        db.add(event)
        created["event"] = event

    if 6 not in skipped:
        created["invited"] = _invite(db, account, invite_emails(data.get("inviteEmails")))

    db.commit()
    db.refresh(account)
    log.info("onboarding.completed", account_id=account.id,
             created=sorted(k for k, v in created.items() if v))
    return created
