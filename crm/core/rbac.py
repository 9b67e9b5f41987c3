# crm/core/rbac.py
from fastapi import Depends, HTTPException, status

from crm.api.deps import get_context
from crm.core.context import RequestContext

ROLE_ADMIN = "admin"      # dono da conta
ROLE_MANAGER = "manager"  # gestor
ROLE_MEMBER = "member"    # equipe

ROLE_NAMES = [ROLE_ADMIN, ROLE_MANAGER, ROLE_MEMBER]

_HIERARCHY = [ROLE_MEMBER, ROLE_MANAGER, ROLE_ADMIN]
_RANK = {name: idx for idx, name in enumerate(_HIERARCHY)}


def require_roles(*roles: str):
    allowed = set(roles)

    def dep(ctx: RequestContext = Depends(get_context)) -> RequestContext:
        if not (ctx.role_names & allowed):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return ctx
    return dep


def require_min_role(min_role: str):
    if min_role not in _RANK:
        raise RuntimeError(f"Unknown role: {min_role}")
    need = _RANK[min_role]

    def dep(ctx: RequestContext = Depends(get_context)) -> RequestContext:
        for r in ctx.role_names:
            if _RANK.get(r, -1) >= need:
                return ctx
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
    return dep
