# crm/api/v1/checkin.py
# Rotas públicas (sem tenant, sem token): a página de check-in do evento presencial.
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crm.db.session import get_db
from crm.schemas.event import CheckinEventOut, CheckinIn, CheckinResult
from crm.services import checkin

router = APIRouter()


@router.get("/{code}", response_model=CheckinEventOut)
def lookup(code: str, db: Session = Depends(get_db)):
    return checkin.find_event(db, code)


@router.post("", response_model=CheckinResult)
def register(body: CheckinIn, db: Session = Depends(get_db)):
    return checkin.register(db, body.code, body.phone)
