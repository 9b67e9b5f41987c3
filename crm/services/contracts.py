# crm/services/contracts.py
"""
Ciclo de vida de contratos e cadeia de renovações.

A cadeia é um grafo de ponteiros ``parent_contract_id`` (contrato renovado
<- renovação). Escritas que fechariam um ciclo são rejeitadas; as
leituras ainda assim param se encontrarem um ciclo vindo de dados antigos.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.clock import utcnow
from crm.core.config import settings
from crm.core.errors import ContractCycleError, InvalidTransition, NotFoundError, ValidationFailed
from crm.models.contract import Contract, CONTRACT_STATUSES

log = structlog.get_logger(__name__)

# ended / cancelled são terminais
TRANSITIONS: dict[str, frozenset[str]] = {
    "active": frozenset({"paused", "ended", "cancelled"}),
    "paused": frozenset({"active", "ended", "cancelled"}),
    "ended": frozenset(),
    "cancelled": frozenset(),
}

STATUS_LABELS = {
    "active": "Ativo",
    "paused": "Pausado",
    "ended": "Encerrado",
    "cancelled": "Cancelado",
}


# ----------------------------------------------------------------------
# Cadeia de renovações (funções puras sobre a lista de contratos)
# ----------------------------------------------------------------------
def history(contract: Contract, contracts: Sequence[Contract]) -> list[Contract]:
    """Ancestrais do contrato, do pai imediato até a raiz."""
    by_id = {c.id: c for c in contracts}
    chain: list[Contract] = []
    seen = {contract.id}
    current = contract
    while current.parent_contract_id is not None:
        parent = by_id.get(current.parent_contract_id)
        if parent is None or parent.id in seen:
            break
        chain.append(parent)
        seen.add(parent.id)
        current = parent
    return chain


def renewals(contract_id: int, contracts: Sequence[Contract]) -> list[Contract]:
    return [c for c in contracts if c.parent_contract_id == contract_id]


def roots(contracts: Sequence[Contract]) -> list[Contract]:
    """Contratos que não são renovação de outro da mesma lista."""
    ids = {c.id for c in contracts}
    return [c for c in contracts if c.parent_contract_id not in ids]


def would_create_cycle(contract_id: Optional[int], parent_id: Optional[int], contracts: Sequence[Contract]) -> bool:
    if parent_id is None or contract_id is None:
        return False
    if parent_id == contract_id:
        return True
    by_id = {c.id: c for c in contracts}
    seen: set[int] = set()
    current = by_id.get(parent_id)
    while current is not None and current.id not in seen:
        if current.id == contract_id:
            return True
        seen.add(current.id)
        current = by_id.get(current.parent_contract_id) if current.parent_contract_id is not None else None
    return False


# ----------------------------------------------------------------------
# Badge de vencimento
# ----------------------------------------------------------------------
def expiry_label(end_date: Optional[date], today: Optional[date] = None,
                 warning_days: Optional[int] = None) -> str:
    if end_date is None:
        return "Sem término"
    today = today or date.today()
    warning_days = settings.CONTRACT_EXPIRY_WARNING_DAYS if warning_days is None else warning_days
    remaining = (end_date - today).days
    if remaining < 0:
        return "Expirado"
    if remaining <= warning_days:
        return f"{remaining}d restantes"
    return "Ativo"


# ----------------------------------------------------------------------
# Operações com banco
# ----------------------------------------------------------------------
def _client_contracts(db: Session, account_id: int, client_id: int) -> list[Contract]:
    stmt = select(Contract).where(Contract.account_id == account_id, Contract.client_id == client_id)
    return list(db.scalars(stmt).all())


def check_parent(db: Session, contract: Contract, parent_id: Optional[int]) -> None:
    """Valida o ponteiro de renovação antes de gravar."""
    if parent_id is None:
        return
    parent = db.get(Contract, parent_id)
    if parent is None or parent.account_id != contract.account_id:
        raise NotFoundError("Contrato de origem não encontrado.")
    if parent.client_id != contract.client_id:
        raise ValidationFailed("A renovação deve ser do mesmo cliente do contrato de origem.")
    if would_create_cycle(contract.id, parent_id, _client_contracts(db, contract.account_id, contract.client_id)):
        raise ContractCycleError()


def change_status(db: Session, contract: Contract, new_status: str, reason: Optional[str] = None,
                  now: Optional[datetime] = None) -> Contract:
    if new_status not in CONTRACT_STATUSES:
        raise ValidationFailed(f"Status inválido: {new_status}")
    allowed = TRANSITIONS.get(contract.status, frozenset())
    if new_status not in allowed:
        raise InvalidTransition(
            f"Não é possível mudar de {STATUS_LABELS.get(contract.status, contract.status)} "
            f"para {STATUS_LABELS[new_status]}.",
            details={"from": contract.status, "to": new_status},
        )
    old = contract.status
    contract.status = new_status
    contract.status_reason = reason
    contract.status_changed_at = now or utcnow()
    db.add(contract)
    db.commit()
    db.refresh(contract)
    log.info("contract.status_changed", contract_id=contract.id, old=old, new=new_status)
    return contract


def renew(db: Session, contract: Contract, data: dict) -> Contract:
    """Cria um contrato novo apontando para o renovado."""
    if contract.status == "cancelled":
        raise InvalidTransition("Contrato cancelado não pode ser renovado.")
    child = Contract(
        account_id=contract.account_id,
        client_id=contract.client_id,
        product_id=data.pop("product_id", None) or contract.product_id,
        parent_contract_id=contract.id,
        contract_type=data.pop("contract_type", None) or "renovacao",
        currency=data.pop("currency", None) or contract.currency,
        status="active",
        **data,
    )
    db.add(child)
    db.commit()
    db.refresh(child)
    log.info("contract.renewed", contract_id=contract.id, renewal_id=child.id)
    return child


# ----------------------------------------------------------------------
# Relatório de churn
# ----------------------------------------------------------------------
CHURN_STATUSES = ("cancelled", "ended", "paused")


def churn_report(db: Session, account_id: int, months: Optional[int] = None, q: Optional[str] = None,
                 now: Optional[datetime] = None) -> dict:
    """Contratos perdidos/pausados, mais recentes primeiro."""
    stmt = (
        select(Contract)
        .where(Contract.account_id == account_id, Contract.status.in_(CHURN_STATUSES))
        .order_by(Contract.status_changed_at.desc(), Contract.id.desc())
    )
    if months:
        cutoff = (now or utcnow()) - timedelta(days=30 * months)
        stmt = stmt.where(Contract.status_changed_at >= cutoff)
    rows = list(db.scalars(stmt).all())
    if q:
        term = q.strip().lower()
        rows = [c for c in rows
                if term in (c.client.full_name or "").lower() or term in (c.status_reason or "").lower()]

    by_status = {s: 0 for s in CHURN_STATUSES}
    lost = Decimal(0)
    for c in rows:
        by_status[c.status] += 1
        if c.status in ("cancelled", "ended"):
            lost += c.value or Decimal(0)
    return {"contracts": rows, "total": len(rows), "by_status": by_status, "lost_value": lost}
