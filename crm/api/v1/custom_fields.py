# crm/api/v1/custom_fields.py
from typing import List

from fastapi import APIRouter, Depends, status

from crm.api.deps import get_context
from crm.core.context import RequestContext
from crm.core.rbac import ROLE_MANAGER, require_min_role
from crm.crud.custom_field import field_crud
from crm.schemas.custom_field import CustomFieldCreate, CustomFieldOut, CustomFieldUpdate, ReorderIn
from crm.services import custom_fields as svc

router = APIRouter()


@router.get("", response_model=List[CustomFieldOut])
def list_fields(clients_view: bool = False, ctx: RequestContext = Depends(get_context)):
    return svc.list_active_fields(ctx.db, ctx.account_id, only_clients_view=clients_view)


@router.post("", response_model=CustomFieldOut, status_code=status.HTTP_201_CREATED)
def create_field(body: CustomFieldCreate, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    data = body.model_dump()
    data["options"] = svc.normalize_options(body.field_type, data["options"])
    # novo campo entra no fim da lista
    data["display_order"] = len(svc.list_active_fields(ctx.db, ctx.account_id))
    return field_crud.create(ctx.db, data, extra={"account_id": ctx.account_id})


@router.put("/reorder", response_model=List[CustomFieldOut])
def reorder(body: ReorderIn, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    return svc.reorder_fields(ctx.db, ctx.account_id, body.ids)


@router.put("/{field_id}", response_model=CustomFieldOut)
def update_field(field_id: int, body: CustomFieldUpdate, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    field = field_crud.get_for_account(ctx.db, ctx.account_id, field_id)
    data = body.model_dump(exclude_unset=True)
    if "options" in data:
        data["options"] = svc.normalize_options(field.field_type, data["options"] or [])
    # o tipo do campo não muda depois de criado
    return field_crud.update(ctx.db, field, data)


@router.delete("/{field_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_field(field_id: int, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    field = field_crud.get_for_account(ctx.db, ctx.account_id, field_id)
    field_crud.remove(ctx.db, field)
