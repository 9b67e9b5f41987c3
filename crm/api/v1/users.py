# crm/api/v1/users.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from crm.api.deps import get_context
from crm.core.context import RequestContext
from crm.core.rbac import ROLE_ADMIN, require_roles
from crm.crud.user import user_crud
from crm.schemas.user import UserCreate, UserOut, UserUpdate

router = APIRouter()


@router.get("", response_model=List[UserOut])
def list_users(ctx: RequestContext = Depends(get_context)):
    return [UserOut.from_user(u) for u in user_crud.list_for_account(ctx.db, ctx.account_id, limit=500)]


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(body: UserCreate, ctx: RequestContext = Depends(require_roles(ROLE_ADMIN))):
    user = user_crud.create(ctx.db, body, extra={"account_id": ctx.account_id})
    return UserOut.from_user(user)


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: int, ctx: RequestContext = Depends(get_context)):
    return UserOut.from_user(user_crud.get_for_account(ctx.db, ctx.account_id, user_id))


@router.put("/{user_id}", response_model=UserOut)
def update_user(user_id: int, body: UserUpdate, ctx: RequestContext = Depends(require_roles(ROLE_ADMIN))):
    user = user_crud.get_for_account(ctx.db, ctx.account_id, user_id)
    if user.id == ctx.user.id and body.roles is not None and ROLE_ADMIN not in body.roles:
        raise HTTPException(status_code=400, detail="Você não pode remover seu próprio papel de admin.")
    return UserOut.from_user(user_crud.update(ctx.db, user, body))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_user(user_id: int, ctx: RequestContext = Depends(require_roles(ROLE_ADMIN))):
    user = user_crud.get_for_account(ctx.db, ctx.account_id, user_id)
    if user.id == ctx.user.id:
        raise HTTPException(status_code=400, detail="Você não pode desativar a si mesmo.")
    # desativa em vez de apagar: followups e tarefas continuam apontando para o usuário
    user.status = "inactive"
    ctx.db.commit()
