from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.errors import ConflictError
from crm.crud.base import CRUDBase
from crm.crud.user import user_crud
from crm.models.account import Account
from crm.schemas.account import AccountCreate, AccountUpdate
from crm.schemas.user import UserCreate
from crm.services.tasks import seed_default_statuses


class CRUDAccount(CRUDBase[Account, AccountCreate, AccountUpdate]):
    def get_by_slug(self, db: Session, slug: str) -> Account | None:
        return db.scalar(select(Account).where(Account.slug == slug))

    def create_with_admin(self, db: Session, obj_in: AccountCreate) -> Account:
        """Conta nova + primeiro admin + colunas padrão do kanban."""
        if self.get_by_slug(db, obj_in.slug):
            raise ConflictError("Slug já está em uso.")
        data = obj_in.model_dump(exclude={"admin_name", "admin_email", "admin_password"})
        account = Account(**data, onboarding_data={})
        db.add(account)
        db.flush()
        seed_default_statuses(db, account.id)
        db.commit()
        user_crud.create(
            db,
            UserCreate(name=obj_in.admin_name, email=obj_in.admin_email,
                       password=obj_in.admin_password, roles=["admin"]),
            extra={"account_id": account.id},
        )
        db.refresh(account)
        return account


account_crud = CRUDAccount(Account, "Conta não encontrada")
