# crm/api/v1/auth.py
from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.api.deps import get_context, get_tenant
from crm.core.clock import as_utc, utcnow
from crm.core.context import RequestContext
from crm.core.security_password import password_policy_ok, verify_and_maybe_upgrade
from crm.core.tokens import create_access_token, create_refresh_token, decode_refresh
from crm.crud.user import user_crud
from crm.db.session import get_db
from crm.models.account import Account
from crm.models.tokens import RefreshToken
from crm.models.user import User
from crm.schemas.token import AuthResponse, LoginIn
from crm.schemas.user import UserOut

log = structlog.get_logger(__name__)

router = APIRouter()


# ---------- helpers ----------
def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _authenticate(db: Session, account: Account, email: str, password: str) -> User:
    if not password_policy_ok(password):
        raise HTTPException(status_code=400, detail="Senha fora do padrão (8–128).")
    user = user_crud.get_by_email(db, normalize_email(email), account.id)
    if not user or user.status == "inactive":
        raise HTTPException(status_code=401, detail="Credenciais inválidas.")
    ok, new_hash = verify_and_maybe_upgrade(password, user.hashed_password)
    if not ok:
        log.info("auth.login_failed", account=account.slug, email=user.email)
        raise HTTPException(status_code=401, detail="Credenciais inválidas.")
    if new_hash:
        user.hashed_password = new_hash
    if user.status == "invited":
        # primeiro login de quem foi convidado ativa a conta
        user.status = "active"
    db.commit()
    return user


def _issue(db: Session, user: User, account: Account, scope: str = "") -> AuthResponse:
    access = create_access_token(sub=user.email, account=account.slug, scope=scope)
    refresh_tok = create_refresh_token(sub=user.email, account=account.slug, scope=scope)
    payload = decode_refresh(refresh_tok)
    db.add(RefreshToken(
        jti=payload["jti"],
        user_email=user.email,
        account_slug=account.slug,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    ))
    db.commit()
    return AuthResponse(access_token=access, refresh_token=refresh_tok, user=UserOut.from_user(user))


def _stored_refresh(db: Session, token: str, account: Account) -> tuple[dict, RefreshToken]:
    payload = decode_refresh(token)
    if not payload or payload.get("account") != account.slug:
        raise HTTPException(status_code=401, detail="Invalid token")
    row = db.scalar(select(RefreshToken).where(RefreshToken.jti == payload["jti"]))
    if row is None or row.revoked_at is not None or as_utc(row.expires_at) <= utcnow():
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload, row


def _token_from(body: str | None, query: str | None) -> str:
    tok = body or query
    if not tok:
        raise HTTPException(status_code=422, detail=[{"loc": ["token"], "msg": "Field required", "type": "missing"}])
    return tok


# ---------- endpoints ----------
@router.post("/login", response_model=AuthResponse)
def login(body: LoginIn, db: Session = Depends(get_db), tenant: Account = Depends(get_tenant)):
    user = _authenticate(db, tenant, body.username, body.password)
    log.info("auth.login", account=tenant.slug, user_id=user.id)
    return _issue(db, user, tenant)


@router.post("/token", response_model=AuthResponse)
def login_oauth2_form(
    form: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    tenant: Account = Depends(get_tenant),
):
    user = _authenticate(db, tenant, form.username, form.password or "")
    return _issue(db, user, tenant, scope=" ".join(form.scopes))


@router.post("/refresh", response_model=AuthResponse)
def refresh(
    token: str | None = Body(default=None, embed=True),        # {"token":"<refresh>"}
    token_q: str | None = Query(default=None, alias="token"),  # ?token=<refresh>
    db: Session = Depends(get_db),
    tenant: Account = Depends(get_tenant),
):
    payload, row = _stored_refresh(db, _token_from(token, token_q), tenant)
    user = user_crud.get_by_email(db, payload["sub"], tenant.id)
    if not user or user.status == "inactive":
        raise HTTPException(status_code=401, detail="Invalid token")
    # rotação: o refresh usado não vale mais
    row.revoked_at = utcnow()
    return _issue(db, user, tenant, scope=payload.get("scope", ""))


@router.post("/logout")
def logout(
    token: str | None = Body(default=None, embed=True),
    token_q: str | None = Query(default=None, alias="token"),
    db: Session = Depends(get_db),
    tenant: Account = Depends(get_tenant),
):
    payload = decode_refresh(_token_from(token, token_q))
    if payload and payload.get("account") == tenant.slug:
        row = db.scalar(select(RefreshToken).where(RefreshToken.jti == payload["jti"]))
        if row and row.revoked_at is None:
            row.revoked_at = utcnow()
            db.commit()
    return {"ok": True}


@router.get("/me", response_model=UserOut)
def me(ctx: RequestContext = Depends(get_context)):
    return UserOut.from_user(ctx.user)
