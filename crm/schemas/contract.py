# crm/schemas/contract.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from crm.services.payment_options import (
    PaymentOption, build_payment_option, is_valid_payment_option, parse_payment_option, payment_option_label,
)

ContractType = Literal["compra", "renovacao", "confissao_divida", "termo_congelamento", "distrato"]
ContractStatus = Literal["active", "paused", "ended", "cancelled"]


class PaymentOptionIn(BaseModel):
    type: Literal["", "a_vista", "parcelado"] = ""
    installments: str = ""
    method: str = ""


def _payment(v):
    # aceita a string pronta ou o trio {type, installments, method}
    if isinstance(v, dict):
        v = build_payment_option(PaymentOption(**PaymentOptionIn(**v).model_dump()))
    elif isinstance(v, PaymentOptionIn):
        v = build_payment_option(PaymentOption(**v.model_dump()))
    if v and not is_valid_payment_option(v):
        raise ValueError("Forma de pagamento inválida")
    return v or None


class _ContractFields(BaseModel):
    product_id: Optional[int] = None
    end_date: Optional[date] = None
    value: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    payment_option: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("payment_option", mode="before")
    @classmethod
    def _payment_option(cls, v):
        return _payment(v)


class ContractCreate(_ContractFields):
    start_date: date
    contract_type: ContractType = "compra"
    parent_contract_id: Optional[int] = None

    @model_validator(mode="after")
    def _dates(self):
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("A data de término deve ser posterior ao início")
        return self


class ContractUpdate(_ContractFields):
    start_date: Optional[date] = None
    contract_type: Optional[ContractType] = None
    parent_contract_id: Optional[int] = None


class ContractRenew(_ContractFields):
    start_date: date
    contract_type: Optional[ContractType] = None


class StatusChange(BaseModel):
    status: ContractStatus
    reason: Optional[str] = None


class ContractOut(BaseModel):
    id: int
    client_id: int
    product_id: Optional[int] = None
    parent_contract_id: Optional[int] = None
    start_date: date
    end_date: Optional[date] = None
    value: Optional[Decimal] = None
    currency: str
    contract_type: str
    payment_option: Optional[str] = None
    payment_label: str = "—"
    payment: Optional[PaymentOptionIn] = None
    notes: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    status: str
    status_reason: Optional[str] = None
    status_changed_at: Optional[datetime] = None
    expiry_label: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_contract(cls, c, expiry: Optional[str] = None) -> "ContractOut":
        out = cls.model_validate(c)
        parsed = parse_payment_option(c.payment_option)
        out.payment_label = payment_option_label(c.payment_option)
        out.payment = PaymentOptionIn(type=parsed.type, installments=parsed.installments, method=parsed.method) \
            if parsed.type else None
        out.expiry_label = expiry
        return out


class ContractChain(BaseModel):
    contract: ContractOut
    history: List[ContractOut]
    renewals: List[ContractOut]


class ChurnRow(BaseModel):
    contract: ContractOut
    client_name: str


class ChurnReport(BaseModel):
    items: List[ChurnRow]
    total: int
    by_status: dict
    lost_value: Decimal
