# crm/core/context.py
from dataclasses import dataclass

from sqlalchemy.orm import Session

from crm.models.account import Account
from crm.models.user import User


@dataclass
class RequestContext:
    """Conta, usuário e sessão da requisição; entregue às rotas via ``Depends(get_context)``."""
    account: Account
    user: User
    db: Session

    @property
    def account_id(self) -> int:
        return self.account.id

    @property
    def role_names(self) -> set[str]:
        return {r.name for r in (self.user.roles or [])}
