# crm/core/tokens.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError
from crm.core.config import settings

ACCESS = "access"
REFRESH = "refresh"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _encode(kind: str, *, sub: str, account: str, lifetime: timedelta, scope: str = "") -> str:
    now = _now()
    payload: Dict[str, Any] = {
        "type": kind,
        "sub": sub,
        "account": account,
        "scope": scope,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(*, sub: str, account: str, scope: str = "") -> str:
    """Access token curto (minutos)."""
    return _encode(ACCESS, sub=sub, account=account, scope=scope,
                   lifetime=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(*, sub: str, account: str, scope: str = "") -> str:
    """Refresh longo (dias); o jti é persistido para permitir revogação."""
    return _encode(REFRESH, sub=sub, account=account, scope=scope,
                   lifetime=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))


def _decode(token: str, kind: str) -> Optional[Dict[str, Any]]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload, dict) or payload.get("type") != kind:
        return None
    if not payload.get("sub") or not payload.get("account") or not payload.get("jti"):
        return None
    return payload


def decode_access(token: str) -> Optional[Dict[str, Any]]:
    return _decode(token, ACCESS)


def decode_refresh(token: str) -> Optional[Dict[str, Any]]:
    return _decode(token, REFRESH)
