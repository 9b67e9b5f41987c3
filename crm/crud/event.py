from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.errors import ValidationFailed
from crm.crud.base import CRUDBase
from crm.models.event import Event, EventParticipant
from crm.models.product import Product
from crm.schemas.event import EventCreate, EventUpdate, ParticipantCreate, ParticipantUpdate
from crm.services.checkin import sync_code


def _products(db: Session, account_id: int, ids: List[int]) -> List[Product]:
    if not ids:
        return []
    rows = db.scalars(select(Product).where(Product.account_id == account_id, Product.id.in_(ids))).all()
    if len(rows) != len(set(ids)):
        raise ValidationFailed("Produto não encontrado", details={"product_ids": ids})
    return list(rows)


class CRUDEvent(CRUDBase[Event, EventCreate, EventUpdate]):
    def create(self, db: Session, obj_in: EventCreate, extra=None) -> Event:
        data = obj_in.model_dump(exclude={"product_ids"})
        if extra:
            data.update(extra)
        event = Event(**data)
        event.products = _products(db, event.account_id, obj_in.product_ids)
        db.add(event)
        db.flush()
        sync_code(db, event)
        db.commit()
        db.refresh(event)
        return event

    def update(self, db: Session, db_obj: Event, obj_in: EventUpdate, allowed=None) -> Event:
        data = obj_in.model_dump(exclude_unset=True)
        product_ids = data.pop("product_ids", None)
        if product_ids is not None:
            db_obj.products = _products(db, db_obj.account_id, product_ids)
        for field, value in data.items():
            setattr(db_obj, field, value)
        if db_obj.ends_at and db_obj.ends_at < db_obj.scheduled_at:
            raise ValidationFailed("O término deve ser posterior ao início")
        # modalidade pode ter mudado
        sync_code(db, db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj


event_crud = CRUDEvent(Event, "Evento não encontrado")
participant_crud = CRUDBase[EventParticipant, ParticipantCreate, ParticipantUpdate](
    EventParticipant, "Participante não encontrado"
)
