# crm/api/deps.py
from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.context import RequestContext
from crm.core.tokens import decode_access
from crm.db.session import get_db
from crm.models.account import Account
from crm.models.user import User


# ----------------------------------------------------------------------
# Lê o Bearer do header Authorization
# ----------------------------------------------------------------------
def get_bearer_token(authorization: str = Header(None, alias="Authorization")) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    return parts[1]


# ----------------------------------------------------------------------
# Conta pelo slug da URL (/api/v1/{tenant}/...)
# ----------------------------------------------------------------------
def get_tenant(tenant: str, db: Session = Depends(get_db)) -> Account:
    row = db.scalar(select(Account).where(Account.slug == tenant))
    if not row:
        raise HTTPException(status_code=404, detail="Conta não encontrada")
    return row


def get_current_user_scoped(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    tenant: Account = Depends(get_tenant),
) -> User:
    payload = decode_access(token)
    if not payload or payload.get("account") != tenant.slug:
        raise HTTPException(status_code=401, detail="Invalid token")
    email = (payload.get("sub") or "").lower()
    user = db.scalar(select(User).where(User.account_id == tenant.id, User.email == email))
    if not user or user.status == "inactive":
        raise HTTPException(status_code=401, detail="Usuário não encontrado na conta")
    return user


def get_context(
    db: Session = Depends(get_db),
    tenant: Account = Depends(get_tenant),
    user: User = Depends(get_current_user_scoped),
) -> RequestContext:
    return RequestContext(account=tenant, user=user, db=db)
