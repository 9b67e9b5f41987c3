# crm/schemas/custom_field.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

FieldKind = Literal["select", "multi_select", "boolean", "number", "currency", "text", "date", "user"]
OptionColor = Literal["green", "red", "yellow", "blue", "purple", "pink", "orange", "gray"]


class FieldOption(BaseModel):
    value: Optional[str] = None
    label: str = ""
    color: OptionColor = "gray"


class CustomFieldCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    field_type: FieldKind
    options: List[FieldOption] = Field(default_factory=list)
    is_required: bool = False
    show_in_clients: bool = True


class CustomFieldUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    options: Optional[List[FieldOption]] = None
    is_required: Optional[bool] = None
    show_in_clients: Optional[bool] = None
    is_active: Optional[bool] = None


class CustomFieldOut(BaseModel):
    id: int
    name: str
    field_type: str
    options: List[Dict[str, Any]] = []
    is_required: bool
    display_order: int
    is_active: bool
    show_in_clients: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ReorderIn(BaseModel):
    ids: List[int]


# ----------------------------------------------------------------------
# Valor etiquetado pelo tipo (um modelo por kind)
# ----------------------------------------------------------------------
class SelectValue(BaseModel):
    kind: Literal["select"]
    value: Optional[str] = None


class MultiSelectValue(BaseModel):
    kind: Literal["multi_select"]
    value: List[str] = Field(default_factory=list)


class BooleanValue(BaseModel):
    kind: Literal["boolean"]
    value: Optional[bool] = None


class NumberValue(BaseModel):
    kind: Literal["number"]
    value: Optional[Decimal] = None


class CurrencyValue(BaseModel):
    kind: Literal["currency"]
    value: Optional[Decimal] = None


class TextValue(BaseModel):
    kind: Literal["text"]
    value: Optional[str] = None


class DateValue(BaseModel):
    kind: Literal["date"]
    value: Optional[date] = None


class UserValue(BaseModel):
    kind: Literal["user"]
    value: List[int] = Field(default_factory=list)


FieldValueIn = Annotated[
    Union[SelectValue, MultiSelectValue, BooleanValue, NumberValue, CurrencyValue, TextValue, DateValue, UserValue],
    Field(discriminator="kind"),
]


class FieldValueOut(BaseModel):
    field_id: int
    name: str
    kind: str
    value: Any = None
    display: Dict[str, Any]
