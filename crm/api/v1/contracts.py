# crm/api/v1/contracts.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy import select

from crm.api.deps import get_context
from crm.core.context import RequestContext
from crm.core.errors import ValidationFailed
from crm.core.rbac import ROLE_MANAGER, require_min_role
from crm.crud.client import client_crud
from crm.crud.contract import contract_crud
from crm.crud.product import product_crud
from crm.models.contract import Contract
from crm.schemas.contract import (
    ChurnReport, ChurnRow, ContractChain, ContractCreate, ContractOut, ContractRenew, ContractUpdate, StatusChange,
)
from crm.services import contracts as svc
from crm.services import storage

router = APIRouter()


def _out(c: Contract) -> ContractOut:
    return ContractOut.from_contract(c, svc.expiry_label(c.end_date))


def _check_product(ctx: RequestContext, product_id: Optional[int]) -> None:
    if product_id is not None:
        product_crud.get_for_account(ctx.db, ctx.account_id, product_id)


# -------- relatório (antes de /contracts/{id}) --------
@router.get("/contracts/churn", response_model=ChurnReport)
def churn(
    months: Optional[int] = Query(default=None, ge=1, le=120),
    q: Optional[str] = None,
    ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER)),
):
    report = svc.churn_report(ctx.db, ctx.account_id, months=months, q=q)
    return ChurnReport(
        items=[ChurnRow(contract=_out(c), client_name=c.client.full_name) for c in report["contracts"]],
        total=report["total"],
        by_status=report["by_status"],
        lost_value=report["lost_value"],
    )


# -------- por cliente --------
@router.get("/clients/{client_id}/contracts", response_model=List[ContractOut])
def list_for_client(client_id: int, ctx: RequestContext = Depends(get_context)):
    c = client_crud.get_for_account(ctx.db, ctx.account_id, client_id)
    rows = ctx.db.scalars(
        select(Contract).where(Contract.client_id == c.id).order_by(Contract.start_date.desc(), Contract.id.desc())
    ).all()
    return [_out(k) for k in rows]


@router.post("/clients/{client_id}/contracts", response_model=ContractOut, status_code=status.HTTP_201_CREATED)
def create(client_id: int, body: ContractCreate, ctx: RequestContext = Depends(get_context)):
    c = client_crud.get_for_account(ctx.db, ctx.account_id, client_id)
    _check_product(ctx, body.product_id)
    data = body.model_dump(exclude_none=True)
    contract = Contract(**data, account_id=ctx.account_id, client_id=c.id)
    svc.check_parent(ctx.db, contract, body.parent_contract_id)
    ctx.db.add(contract)
    ctx.db.commit()
    ctx.db.refresh(contract)
    return _out(contract)


# -------- por contrato --------
@router.get("/contracts/{contract_id}", response_model=ContractOut)
def get(contract_id: int, ctx: RequestContext = Depends(get_context)):
    return _out(contract_crud.get_for_account(ctx.db, ctx.account_id, contract_id))


@router.put("/contracts/{contract_id}", response_model=ContractOut)
def update(contract_id: int, body: ContractUpdate, ctx: RequestContext = Depends(get_context)):
    contract = contract_crud.get_for_account(ctx.db, ctx.account_id, contract_id)
    data = body.model_dump(exclude_unset=True)
    if "product_id" in data:
        _check_product(ctx, data["product_id"])
    if "parent_contract_id" in data:
        svc.check_parent(ctx.db, contract, data["parent_contract_id"])
    start, end = data.get("start_date", contract.start_date), data.get("end_date", contract.end_date)
    if end and start and end < start:
        raise ValidationFailed("A data de término deve ser posterior ao início")
    # status só muda pela rota /status
    return _out(contract_crud.update(ctx.db, contract, data))


@router.delete("/contracts/{contract_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(contract_id: int, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    contract = contract_crud.get_for_account(ctx.db, ctx.account_id, contract_id)
    # renovações passam a ser raiz
    for child in ctx.db.scalars(select(Contract).where(Contract.parent_contract_id == contract.id)).all():
        child.parent_contract_id = None
    contract_crud.remove(ctx.db, contract)


@router.post("/contracts/{contract_id}/status", response_model=ContractOut)
def change_status(contract_id: int, body: StatusChange, ctx: RequestContext = Depends(get_context)):
    contract = contract_crud.get_for_account(ctx.db, ctx.account_id, contract_id)
    return _out(svc.change_status(ctx.db, contract, body.status, body.reason))


@router.post("/contracts/{contract_id}/renew", response_model=ContractOut, status_code=status.HTTP_201_CREATED)
def renew(contract_id: int, body: ContractRenew, ctx: RequestContext = Depends(get_context)):
    contract = contract_crud.get_for_account(ctx.db, ctx.account_id, contract_id)
    _check_product(ctx, body.product_id)
    if body.end_date and body.end_date < body.start_date:
        raise ValidationFailed("A data de término deve ser posterior ao início")
    return _out(svc.renew(ctx.db, contract, body.model_dump(exclude_none=True)))


@router.get("/contracts/{contract_id}/chain", response_model=ContractChain)
def chain(contract_id: int, ctx: RequestContext = Depends(get_context)):
    contract = contract_crud.get_for_account(ctx.db, ctx.account_id, contract_id)
    siblings = ctx.db.scalars(
        select(Contract).where(Contract.account_id == ctx.account_id, Contract.client_id == contract.client_id)
    ).all()
    return ContractChain(
        contract=_out(contract),
        history=[_out(c) for c in svc.history(contract, siblings)],
        renewals=[_out(c) for c in svc.renewals(contract.id, siblings)],
    )


@router.post("/contracts/{contract_id}/file", response_model=ContractOut)
async def upload_file(contract_id: int, file: UploadFile = File(...), ctx: RequestContext = Depends(get_context)):
    contract = contract_crud.get_for_account(ctx.db, ctx.account_id, contract_id)
    stored = storage.save_contract_pdf(ctx.account_id, contract.client_id, file.filename, await file.read(),
                                       file.content_type)
    return _out(contract_crud.update(ctx.db, contract, {"file_url": stored.url, "file_name": stored.name}))
