# crm/services/clients.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from crm.core.errors import ValidationFailed
from crm.models.client import Client
from crm.models.contract import Contract

SORTABLE = {"name": Client.full_name, "created_at": Client.created_at}


def list_clients(db: Session, account_id: int, *, status: Optional[str] = None, tag: Optional[str] = None,
                 product_id: Optional[int] = None, q: Optional[str] = None, sort: str = "created_at",
                 order: str = "desc", offset: int = 0, limit: int = 50) -> tuple[list[Client], int]:
    """Filtros combinados + busca por nome/telefone; devolve (página, total)."""
    if sort not in SORTABLE:
        raise ValidationFailed("Ordenação inválida.", details={"sort": sort})
    stmt = select(Client).where(Client.account_id == account_id)
    if status:
        stmt = stmt.where(Client.status == status)
    if product_id is not None:
        stmt = stmt.where(Client.id.in_(
            select(Contract.client_id).where(Contract.account_id == account_id, Contract.product_id == product_id)
        ))
    if q:
        term = q.strip().lower()
        digits = "".join(ch for ch in term if ch.isdigit())
        conds = [func.lower(Client.full_name).like(f"%{term}%")]
        if digits:
            conds.append(Client.phone_e164.like(f"%{digits}%"))
        stmt = stmt.where(or_(*conds))

    column = SORTABLE[sort]
    stmt = stmt.order_by(column.asc() if order == "asc" else column.desc(), Client.id)
    rows = list(db.scalars(stmt).all())
    # tags ficam em JSON: filtro em memória, portável entre sqlite e postgres
    if tag:
        rows = [c for c in rows if tag in (c.tags or [])]
    return rows[offset:offset + limit], len(rows)
