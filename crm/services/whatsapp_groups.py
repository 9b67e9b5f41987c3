# crm/services/whatsapp_groups.py
from __future__ import annotations

from typing import Optional, Sequence

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from crm.core.errors import NotificationError, ValidationFailed
from crm.models.whatsapp_group import WhatsAppGroup
from crm.services.notifiers.registry import NotifierFactory

log = structlog.get_logger(__name__)


def search(db: Session, account_id: int, q: Optional[str] = None,
           ai_enabled: Optional[bool] = None) -> list[WhatsAppGroup]:
    stmt = select(WhatsAppGroup).where(WhatsAppGroup.account_id == account_id)
    if q:
        like = f"%{q.strip().lower()}%"
        stmt = stmt.where(or_(func.lower(WhatsAppGroup.name).like(like), WhatsAppGroup.group_jid.like(like)))
    if ai_enabled is not None:
        stmt = stmt.where(WhatsAppGroup.ai_analysis_enabled.is_(ai_enabled))
    return list(db.scalars(stmt.order_by(WhatsAppGroup.name)).all())


def sync_groups(db: Session, account_id: int, factory: NotifierFactory) -> dict:
    """Importa/atualiza os grupos da instância Evolution da conta."""
    sender = factory.whatsapp(db, account_id)
    remote = sender.fetch_groups()
    existing = {g.group_jid: g for g in search(db, account_id)}
    created = updated = 0
    for item in remote:
        jid = item.get("id") or item.get("jid")
        if not jid:
            continue
        group = existing.get(jid)
        if group is None:
            group = WhatsAppGroup(account_id=account_id, group_jid=jid, name=item.get("subject") or jid)
            db.add(group)
            existing[jid] = group
            created += 1
        else:
            updated += 1
        group.name = item.get("subject") or group.name
        group.description = item.get("desc") or group.description
        group.owner_phone = (item.get("owner") or "").split("@")[0] or group.owner_phone
        group.participant_count = int(item.get("size") or len(item.get("participants") or []) or group.participant_count or 0)
    db.commit()
    log.info("whatsapp_groups.synced", account_id=account_id, created=created, updated=updated)
    return {"created": created, "updated": updated, "total": len(existing)}


def send_to_groups(db: Session, account_id: int, group_ids: Sequence[int], text: str,
                   factory: NotifierFactory) -> list[dict]:
    """Envia o texto grupo a grupo; cada grupo tem seu próprio resultado."""
    if not text.strip():
        raise ValidationFailed("A mensagem não pode ficar vazia.")
    groups = db.scalars(
        select(WhatsAppGroup).where(WhatsAppGroup.account_id == account_id, WhatsAppGroup.id.in_(group_ids))
    ).all()
    if not groups:
        raise ValidationFailed("Selecione ao menos um grupo.")
    sender = factory.whatsapp(db, account_id)
    results = []
    for group in groups:
        try:
            sender.send(group.group_jid, text)
            results.append({"group_id": group.id, "name": group.name, "success": True, "error": None})
        except NotificationError as exc:
            results.append({"group_id": group.id, "name": group.name, "success": False, "error": exc.message})
    log.info("whatsapp_groups.sent", account_id=account_id, total=len(results),
             failed=sum(1 for r in results if not r["success"]))
    return results
