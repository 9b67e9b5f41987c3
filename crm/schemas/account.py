# crm/schemas/account.py
from typing import Optional, Dict, Any
from pydantic import BaseModel, EmailStr, Field, field_validator

from crm.core.validators import format_cnpj, validate_cnpj


def _check_cnpj(v: Optional[str]) -> Optional[str]:
    if not v:
        return None
    if not validate_cnpj(v):
        raise ValueError("CNPJ inválido")
    return format_cnpj(v)


class AccountBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    cnpj: Optional[str] = None
    logo_url: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    welcome_message: Optional[str] = None

    @field_validator("cnpj")
    @classmethod
    def _cnpj(cls, v: Optional[str]) -> Optional[str]:
        return _check_cnpj(v)


class AccountCreate(AccountBase):
    slug: str = Field(pattern=r"^[a-z0-9][a-z0-9-]{1,62}$")
    admin_name: str
    admin_email: EmailStr
    admin_password: str = Field(min_length=8, max_length=128)


class AccountUpdate(BaseModel):   # edição parcial
    name: Optional[str] = None
    cnpj: Optional[str] = None
    logo_url: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    welcome_message: Optional[str] = None
    ai_analysis_enabled: Optional[bool] = None
    config_json: Optional[Dict[str, Any]] = None

    @field_validator("cnpj")
    @classmethod
    def _cnpj(cls, v: Optional[str]) -> Optional[str]:
        return _check_cnpj(v)


class AccountOut(BaseModel):
    id: int
    name: str
    slug: str
    cnpj: Optional[str] = None
    logo_url: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    welcome_message: Optional[str] = None
    ai_analysis_enabled: bool = False
    onboarding_step: int = 1
    onboarding_completed: bool = False
    config_json: Dict[str, Any] = {}

    model_config = {"from_attributes": True}
