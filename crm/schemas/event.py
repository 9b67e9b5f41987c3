# crm/schemas/event.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from crm.schemas.client import check_phone

EventType = Literal["live", "material", "mentoria", "workshop", "masterclass", "webinar", "imersao", "plantao"]
Modality = Literal["online", "presencial"]
RsvpStatus = Literal["pending", "confirmed", "declined", "waitlist", "attended", "no_show"]


# ----------------------------------------------------------------------
# Produtos
# ----------------------------------------------------------------------
class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    billing_period: Optional[Literal["one_time", "monthly", "yearly"]] = None
    is_active: bool = True


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    billing_period: Optional[Literal["one_time", "monthly", "yearly"]] = None
    is_active: Optional[bool] = None


class ProductOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Optional[Decimal] = None
    billing_period: Optional[str] = None
    is_active: bool

    model_config = {"from_attributes": True}


# ----------------------------------------------------------------------
# Eventos
# ----------------------------------------------------------------------
class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    event_type: EventType = "live"
    modality: Modality = "online"
    scheduled_at: datetime
    ends_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    address: Optional[str] = None
    meeting_url: Optional[str] = None
    max_capacity: Optional[int] = Field(default=None, ge=0)
    is_recurring: bool = False
    product_ids: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _window(self):
        if self.ends_at and self.ends_at < self.scheduled_at:
            raise ValueError("O término deve ser posterior ao início")
        return self


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    event_type: Optional[EventType] = None
    modality: Optional[Modality] = None
    scheduled_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    address: Optional[str] = None
    meeting_url: Optional[str] = None
    max_capacity: Optional[int] = Field(default=None, ge=0)
    is_recurring: Optional[bool] = None
    status: Optional[Literal["scheduled", "live", "finished", "cancelled"]] = None
    product_ids: Optional[List[int]] = None


class EventOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    event_type: str
    modality: str
    scheduled_at: datetime
    ends_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    address: Optional[str] = None
    meeting_url: Optional[str] = None
    max_capacity: Optional[int] = None
    is_recurring: bool
    status: str
    checkin_code: Optional[str] = None
    products: List[ProductOut] = []

    model_config = {"from_attributes": True}


# ----------------------------------------------------------------------
# Participantes
# ----------------------------------------------------------------------
class ParticipantCreate(BaseModel):
    client_id: Optional[int] = None
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    guest_email: Optional[EmailStr] = None
    rsvp_status: RsvpStatus = "pending"

    @field_validator("guest_phone")
    @classmethod
    def _phone(cls, v):
        return check_phone(v) if v else None

    @model_validator(mode="after")
    def _who(self):
        if self.client_id is None and not (self.guest_name or "").strip():
            raise ValueError("Informe um cliente ou o nome do convidado")
        return self


class ParticipantUpdate(BaseModel):
    rsvp_status: RsvpStatus


class ParticipantOut(BaseModel):
    id: int
    event_id: int
    client_id: Optional[int] = None
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    rsvp_status: str
    rsvp_token: Optional[str] = None


# ----------------------------------------------------------------------
# Check-in público
# ----------------------------------------------------------------------
class CheckinIn(BaseModel):
    code: Optional[str] = None
    phone: Optional[str] = None


class CheckinEventOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    scheduled_at: datetime
    address: Optional[str] = None
    modality: str

    model_config = {"from_attributes": True}


class CheckinResult(BaseModel):
    success: bool
    message: str
    client_name: str
    event_title: str
    already_checked_in: bool = False
