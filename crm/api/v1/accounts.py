# crm/api/v1/accounts.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from crm.api.deps import get_context
from crm.core.context import RequestContext
from crm.core.rbac import ROLE_ADMIN, require_roles
from crm.crud.account import account_crud
from crm.db.session import get_db
from crm.schemas.account import AccountCreate, AccountOut, AccountUpdate

# POST /api/v1/accounts (cadastro público de conta)
public_router = APIRouter()
# GET/PUT /api/v1/{tenant}/account
router = APIRouter()


@public_router.post("", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
def create_account(body: AccountCreate, db: Session = Depends(get_db)):
    return account_crud.create_with_admin(db, body)


@router.get("", response_model=AccountOut)
def get_my_account(ctx: RequestContext = Depends(get_context)):
    return ctx.account


@router.put("", response_model=AccountOut)
def update_my_account(body: AccountUpdate, ctx: RequestContext = Depends(require_roles(ROLE_ADMIN))):
    return account_crud.update(ctx.db, ctx.account, body)
