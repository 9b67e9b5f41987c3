# crm/schemas/client.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from crm.core.validators import (
    format_cep, format_cnpj, format_cpf, format_date_br, normalize_phone_e164, only_digits,
    parse_date_br_to_iso, validate_birth_date, validate_cep, validate_cnpj, validate_cpf,
    validate_international_phone,
)

ClientStatus = Literal["active", "inactive", "churn", "churn_risk", "lead"]
FollowupType = Literal["note", "call", "meeting", "whatsapp", "email"]


# ----------------------------------------------------------------------
# Validações compartilhadas (rodam antes de qualquer escrita)
# ----------------------------------------------------------------------
def check_phone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    phone = normalize_phone_e164(v)
    if not phone:
        raise ValueError("Telefone obrigatório")
    result = validate_international_phone(phone)
    if not result.is_valid:
        raise ValueError(result.error or "Telefone inválido")
    return phone


def check_cpf(v: Optional[str]) -> Optional[str]:
    if not v:
        return None
    if not validate_cpf(v):
        raise ValueError("CPF inválido")
    return format_cpf(v)


def check_cnpj(v: Optional[str]) -> Optional[str]:
    if not v:
        return None
    if not validate_cnpj(v):
        raise ValueError("CNPJ inválido")
    return format_cnpj(v)


def check_cep(v: Optional[str]) -> Optional[str]:
    if not v:
        return None
    if not validate_cep(v):
        raise ValueError("CEP inválido")
    return format_cep(v)


def check_birth_date(v: Any) -> Optional[date]:
    if v in (None, ""):
        return None
    if isinstance(v, datetime):
        v = v.date()
    if isinstance(v, date):
        br = format_date_br(v)
    elif isinstance(v, str) and "/" in v:
        br = v
    else:
        # ISO (AAAA-MM-DD)
        try:
            br = format_date_br(date.fromisoformat(str(v)[:10]))
        except ValueError:
            raise ValueError("Data de nascimento inválida")
    result = validate_birth_date(br)
    if not result.is_valid:
        raise ValueError(result.error or "Data de nascimento inválida")
    iso = parse_date_br_to_iso(br)
    if iso is None:
        raise ValueError("Data de nascimento inválida")
    return date.fromisoformat(iso)


class EmailEntry(BaseModel):
    email: EmailStr
    type: str = "main"


class Address(BaseModel):
    zip_code: Optional[str] = None
    street: Optional[str] = None
    street_number: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(default=None, max_length=2)

    @field_validator("zip_code")
    @classmethod
    def _cep(cls, v):
        return check_cep(v)


class _ClientFields(BaseModel):
    additional_phones: Optional[List[str]] = None
    emails: Optional[List[EmailEntry]] = None
    cpf: Optional[str] = None
    cnpj: Optional[str] = None
    company_name: Optional[str] = None
    birth_date: Optional[date] = None
    zip_code: Optional[str] = None
    street: Optional[str] = None
    street_number: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(default=None, max_length=2)
    business_address: Optional[Address] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    avatar_url: Optional[str] = None
    responsible_user_id: Optional[int] = None

    @field_validator("additional_phones")
    @classmethod
    def _phones(cls, v):
        if v is None:
            return None
        return [check_phone(p) for p in v if only_digits(p)]

    @field_validator("cpf")
    @classmethod
    def _cpf(cls, v):
        return check_cpf(v)

    @field_validator("cnpj")
    @classmethod
    def _cnpj(cls, v):
        return check_cnpj(v)

    @field_validator("zip_code")
    @classmethod
    def _cep(cls, v):
        return check_cep(v)

    @field_validator("birth_date", mode="before")
    @classmethod
    def _birth(cls, v):
        return check_birth_date(v)

    @field_validator("tags")
    @classmethod
    def _tags(cls, v):
        if v is None:
            return None
        return list(dict.fromkeys(t.strip() for t in v if t and t.strip()))


class ClientCreate(_ClientFields):
    full_name: str = Field(min_length=1, max_length=200)
    phone_e164: str
    status: ClientStatus = "active"

    @field_validator("phone_e164")
    @classmethod
    def _phone(cls, v):
        return check_phone(v)


class ClientUpdate(_ClientFields):   # edição parcial (last write wins)
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone_e164: Optional[str] = None
    status: Optional[ClientStatus] = None

    @field_validator("phone_e164")
    @classmethod
    def _phone(cls, v):
        return check_phone(v)


class ClientOut(BaseModel):
    id: int
    account_id: int
    full_name: str
    phone_e164: str
    additional_phones: List[str] = []
    emails: List[Dict[str, Any]] = []
    cpf: Optional[str] = None
    cnpj: Optional[str] = None
    company_name: Optional[str] = None
    birth_date: Optional[date] = None
    zip_code: Optional[str] = None
    street: Optional[str] = None
    street_number: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    business_address: Dict[str, Any] = {}
    status: str
    tags: List[str] = []
    notes: Optional[str] = None
    avatar_url: Optional[str] = None
    responsible_user_id: Optional[int] = None
    external_source: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ClientPage(BaseModel):
    items: List[ClientOut]
    total: int
    offset: int
    limit: int


# ----------------------------------------------------------------------
# Followups
# ----------------------------------------------------------------------
class FollowupCreate(BaseModel):
    type: FollowupType = "note"
    title: Optional[str] = Field(default=None, max_length=200)
    content: Optional[str] = None
    parent_id: Optional[int] = None


class FollowupUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None


class FollowupOut(BaseModel):
    id: int
    client_id: int
    user_id: Optional[int] = None
    parent_id: Optional[int] = None
    type: str
    title: Optional[str] = None
    content: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
