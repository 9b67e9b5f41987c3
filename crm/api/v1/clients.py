# crm/api/v1/clients.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import BaseModel
from sqlalchemy import select

from crm.api.deps import get_context
from crm.core.context import RequestContext
from crm.core.errors import ValidationFailed
from crm.core.rbac import ROLE_MANAGER, require_min_role
from crm.crud.client import client_crud, followup_crud
from crm.crud.custom_field import field_crud
from crm.models.client import Client, ClientFollowup
from crm.models.contract import Contract
from crm.models.user import User
from crm.schemas.client import (
    ClientCreate, ClientOut, ClientPage, ClientStatus, ClientUpdate, FollowupCreate, FollowupOut, FollowupType,
    FollowupUpdate,
)
from crm.schemas.contract import ContractOut
from crm.schemas.custom_field import FieldValueIn, FieldValueOut
from crm.services import custom_fields, storage
from crm.services.clients import list_clients
from crm.services.contracts import expiry_label

router = APIRouter()

IMAGE_TYPES = {"image/png", "image/jpeg", "image/webp", "image/gif"}


class ClientDetail(BaseModel):
    client: ClientOut
    contracts: List[ContractOut]
    followups: List[FollowupOut]
    fields: List[FieldValueOut]


def _field_values(ctx: RequestContext, client: Client) -> List[FieldValueOut]:
    fields = custom_fields.list_active_fields(ctx.db, ctx.account_id)
    rows = custom_fields.values_for_client(ctx.db, client.id)
    user_names = dict(ctx.db.execute(select(User.id, User.name).where(User.account_id == ctx.account_id)).all())
    out = []
    for f in fields:
        value = custom_fields.read_value(rows.get(f.id), f.field_type)
        out.append(FieldValueOut(field_id=f.id, name=f.name, kind=f.field_type, value=value,
                                 display=custom_fields.display_value(f, value, user_names)))
    return out


# ---------------------- clientes ----------------------
@router.get("", response_model=ClientPage)
def list_(
    status_: Optional[ClientStatus] = Query(default=None, alias="status"),
    tag: Optional[str] = None,
    product_id: Optional[int] = None,
    q: Optional[str] = None,
    sort: str = "created_at",
    order: str = Query(default="desc", pattern="^(asc|desc)$"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    ctx: RequestContext = Depends(get_context),
):
    rows, total = list_clients(ctx.db, ctx.account_id, status=status_, tag=tag, product_id=product_id, q=q,
                               sort=sort, order=order, offset=offset, limit=limit)
    return ClientPage(items=rows, total=total, offset=offset, limit=limit)


@router.post("", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
def create(body: ClientCreate, ctx: RequestContext = Depends(get_context)):
    # exclude_none: listas JSON ficam com o default do modelo
    return client_crud.create(ctx.db, body.model_dump(exclude_none=True), extra={"account_id": ctx.account_id})


@router.get("/{client_id}", response_model=ClientDetail)
def detail(client_id: int, ctx: RequestContext = Depends(get_context)):
    c = client_crud.get_for_account(ctx.db, ctx.account_id, client_id)
    contracts = ctx.db.scalars(
        select(Contract).where(Contract.client_id == c.id).order_by(Contract.start_date.desc(), Contract.id.desc())
    ).all()
    followups = ctx.db.scalars(
        select(ClientFollowup).where(ClientFollowup.client_id == c.id).order_by(ClientFollowup.created_at.desc())
    ).all()
    return ClientDetail(
        client=ClientOut.model_validate(c),
        contracts=[ContractOut.from_contract(k, expiry_label(k.end_date)) for k in contracts],
        followups=[FollowupOut.model_validate(f) for f in followups],
        fields=_field_values(ctx, c),
    )


@router.put("/{client_id}", response_model=ClientOut)
def update(client_id: int, body: ClientUpdate, ctx: RequestContext = Depends(get_context)):
    c = client_crud.get_for_account(ctx.db, ctx.account_id, client_id)
    data = body.model_dump(exclude_unset=True)
    for key in ("additional_phones", "emails", "tags"):
        if key in data and data[key] is None:
            data[key] = []
    if "business_address" in data:
        data["business_address"] = data["business_address"] or {}
    return client_crud.update(ctx.db, c, data)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete(client_id: int, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    c = client_crud.get_for_account(ctx.db, ctx.account_id, client_id)
    client_crud.remove(ctx.db, c)


@router.post("/{client_id}/avatar", response_model=ClientOut)
async def upload_avatar(client_id: int, file: UploadFile = File(...), ctx: RequestContext = Depends(get_context)):
    c = client_crud.get_for_account(ctx.db, ctx.account_id, client_id)
    stored = storage.save("avatars", str(ctx.account_id), file.filename, await file.read(),
                          content_type=file.content_type, allowed_types=IMAGE_TYPES)
    return client_crud.update(ctx.db, c, {"avatar_url": stored.url})


# ---------------------- campos personalizados ----------------------
@router.get("/{client_id}/fields", response_model=List[FieldValueOut])
def list_field_values(client_id: int, ctx: RequestContext = Depends(get_context)):
    c = client_crud.get_for_account(ctx.db, ctx.account_id, client_id)
    return _field_values(ctx, c)


@router.put("/{client_id}/fields/{field_id}", response_model=FieldValueOut)
def set_field_value(client_id: int, field_id: int, body: FieldValueIn, ctx: RequestContext = Depends(get_context)):
    c = client_crud.get_for_account(ctx.db, ctx.account_id, client_id)
    field = field_crud.get_for_account(ctx.db, ctx.account_id, field_id)
    row = custom_fields.upsert_value(ctx.db, c.id, field, body.kind, body.value)
    value = custom_fields.read_value(row, field.field_type)
    user_names = dict(ctx.db.execute(select(User.id, User.name).where(User.account_id == ctx.account_id)).all())
    return FieldValueOut(field_id=field.id, name=field.name, kind=field.field_type, value=value,
                         display=custom_fields.display_value(field, value, user_names))


# ---------------------- acompanhamentos ----------------------
def _check_parent(ctx: RequestContext, client: Client, parent_id: Optional[int]) -> None:
    if parent_id is None:
        return
    parent = ctx.db.get(ClientFollowup, parent_id)
    if parent is None or parent.client_id != client.id:
        raise ValidationFailed("Acompanhamento de origem não encontrado.")


@router.get("/{client_id}/followups", response_model=List[FollowupOut])
def list_followups(client_id: int, ctx: RequestContext = Depends(get_context)):
    c = client_crud.get_for_account(ctx.db, ctx.account_id, client_id)
    return ctx.db.scalars(
        select(ClientFollowup).where(ClientFollowup.client_id == c.id).order_by(ClientFollowup.created_at.desc())
    ).all()


@router.post("/{client_id}/followups", response_model=FollowupOut, status_code=status.HTTP_201_CREATED)
def create_followup(client_id: int, body: FollowupCreate, ctx: RequestContext = Depends(get_context)):
    c = client_crud.get_for_account(ctx.db, ctx.account_id, client_id)
    _check_parent(ctx, c, body.parent_id)
    return followup_crud.create(ctx.db, body, extra={"account_id": ctx.account_id, "client_id": c.id,
                                                     "user_id": ctx.user.id})


@router.post("/{client_id}/followups/upload", response_model=FollowupOut, status_code=status.HTTP_201_CREATED)
async def create_followup_with_file(
    client_id: int,
    file: UploadFile = File(...),
    type: FollowupType = Form("note"),
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    parent_id: Optional[int] = Form(None),
    ctx: RequestContext = Depends(get_context),
):
    c = client_crud.get_for_account(ctx.db, ctx.account_id, client_id)
    _check_parent(ctx, c, parent_id)
    stored = storage.save("followups", f"{ctx.account_id}/{c.id}", file.filename, await file.read(),
                          content_type=file.content_type)
    return followup_crud.create(ctx.db, {
        "type": type, "title": title, "content": content, "parent_id": parent_id,
        "file_url": stored.url, "file_name": stored.name,
    }, extra={"account_id": ctx.account_id, "client_id": c.id, "user_id": ctx.user.id})


@router.put("/{client_id}/followups/{followup_id}", response_model=FollowupOut)
def update_followup(client_id: int, followup_id: int, body: FollowupUpdate, ctx: RequestContext = Depends(get_context)):
    f = followup_crud.get_for_account(ctx.db, ctx.account_id, followup_id)
    if f.client_id != client_id:
        raise ValidationFailed("Acompanhamento não pertence ao cliente.")
    return followup_crud.update(ctx.db, f, body)


@router.delete("/{client_id}/followups/{followup_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_followup(client_id: int, followup_id: int, ctx: RequestContext = Depends(get_context)):
    f = followup_crud.get_for_account(ctx.db, ctx.account_id, followup_id)
    if f.client_id != client_id:
        raise ValidationFailed("Acompanhamento não pertence ao cliente.")
    followup_crud.remove(ctx.db, f)
