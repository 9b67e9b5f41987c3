from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.errors import ConflictError
from crm.core.security_password import hash_password
from crm.crud.base import CRUDBase
from crm.models.user import Role, User
from crm.schemas.user import UserCreate, UserUpdate


class CRUDUser(CRUDBase[User, UserCreate, UserUpdate]):
    def get_by_email(self, db: Session, email: str, account_id: int) -> Optional[User]:
        email = (email or "").strip().lower()
        return db.scalar(select(User).where(User.email == email, User.account_id == account_id))

    def set_roles(self, db: Session, user: User, role_names: Iterable[str]) -> None:
        wanted = set(role_names)
        roles = db.scalars(select(Role).where(Role.name.in_(wanted))).all()
        user.roles = list(roles)

    def create(self, db: Session, obj_in: UserCreate, extra=None) -> User:
        data = obj_in.model_dump()
        role_names = data.pop("roles", None) or ["member"]
        data["email"] = data["email"].lower()
        data["hashed_password"] = hash_password(data.pop("password"))
        if extra:
            data.update(extra)
        if self.get_by_email(db, data["email"], data["account_id"]):
            raise ConflictError("Já existe um usuário com este e-mail.")
        user = User(**data)
        db.add(user)
        db.flush()
        self.set_roles(db, user, role_names)
        db.commit()
        db.refresh(user)
        return user

    def update(self, db: Session, db_obj: User, obj_in: UserUpdate, allowed=None) -> User:
        data = obj_in.model_dump(exclude_unset=True)
        password = data.pop("password", None)
        role_names = data.pop("roles", None)
        if password:
            db_obj.hashed_password = hash_password(password)
        if role_names is not None:
            self.set_roles(db, db_obj, role_names)
        return super().update(db, db_obj, data, allowed={"name", "status", "avatar_url"})


user_crud = CRUDUser(User, "Usuário não encontrado.")
