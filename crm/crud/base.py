from typing import TypeVar, Generic, Type, Any, Optional, List, Dict
from sqlalchemy import select
from sqlalchemy.orm import Session
from pydantic import BaseModel
from crm.db.base import Base
from crm.core.errors import NotFoundError

ModelType = TypeVar("ModelType", bound=Base)
CreateSchema = TypeVar("CreateSchema", bound=BaseModel)
UpdateSchema = TypeVar("UpdateSchema", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchema, UpdateSchema]):
    """CRUD genérico escopado por conta (``account_id``)."""

    not_found_message = "Registro não encontrado."

    def __init__(self, model: Type[ModelType], not_found_message: str | None = None):
        self.model = model
        if not_found_message:
            self.not_found_message = not_found_message

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return db.get(self.model, id)

    def get_for_account(self, db: Session, account_id: int, id: Any) -> ModelType:
        obj = db.get(self.model, id)
        if obj is None or getattr(obj, "account_id", None) != account_id:
            raise NotFoundError(self.not_found_message)
        return obj

    def list_for_account(self, db: Session, account_id: int, skip: int = 0, limit: int = 100) -> List[ModelType]:
        stmt = select(self.model).where(self.model.account_id == account_id).order_by(self.model.id)
        return list(db.scalars(stmt.offset(skip).limit(limit)).all())

    def create(self, db: Session, obj_in: CreateSchema | Dict[str, Any], extra: Dict[str, Any] | None = None) -> ModelType:
        data = dict(obj_in) if isinstance(obj_in, dict) else obj_in.model_dump()
        if extra:
            data.update(extra)
        obj = self.model(**data)
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    def update(self, db: Session, db_obj: ModelType, obj_in: UpdateSchema | Dict[str, Any],
               allowed: set[str] | None = None) -> ModelType:
        # atualização parcial: só campos enviados (last write wins)
        data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        for field, value in data.items():
            if allowed is not None and field not in allowed:
                continue
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def remove(self, db: Session, db_obj: ModelType) -> ModelType:
        db.delete(db_obj)
        db.commit()
        return db_obj
