# crm/api/v1/whatsapp_groups.py
from typing import List, Optional

from fastapi import APIRouter, Depends

from crm.api.deps import get_context
from crm.core.context import RequestContext
from crm.core.errors import NotFoundError
from crm.core.rbac import ROLE_MANAGER, require_min_role
from crm.models.whatsapp_group import WhatsAppGroup
from crm.schemas.integration import GroupMessageIn, GroupOut, GroupSendResult, GroupUpdate
from crm.services import whatsapp_groups as svc
from crm.services.notifiers.registry import NotifierFactory, get_notifier_factory

router = APIRouter()


@router.get("", response_model=List[GroupOut])
def list_groups(q: Optional[str] = None, ai_enabled: Optional[bool] = None,
                ctx: RequestContext = Depends(get_context)):
    return svc.search(ctx.db, ctx.account_id, q=q, ai_enabled=ai_enabled)


@router.post("/sync")
def sync_groups(ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER)),
                factory: NotifierFactory = Depends(get_notifier_factory)):
    return svc.sync_groups(ctx.db, ctx.account_id, factory)


@router.post("/send", response_model=List[GroupSendResult])
def send_message(body: GroupMessageIn, ctx: RequestContext = Depends(get_context),
                 factory: NotifierFactory = Depends(get_notifier_factory)):
    return svc.send_to_groups(ctx.db, ctx.account_id, body.group_ids, body.text, factory)


@router.put("/{group_id}", response_model=GroupOut)
def update_group(group_id: int, body: GroupUpdate, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    group = ctx.db.get(WhatsAppGroup, group_id)
    if group is None or group.account_id != ctx.account_id:
        raise NotFoundError("Grupo não encontrado")
    for k, v in body.model_dump(exclude_unset=True).items():
        setattr(group, k, v)
    ctx.db.commit()
    ctx.db.refresh(group)
    return group
