# crm/core/validators.py
"""
Validação e formatação de documentos, telefones e datas brasileiras.

Usado pelos schemas (antes de qualquer escrita) e pelos fluxos de
onboarding / check-in que normalizam telefone para E.164.
"""
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

_NON_DIGIT = re.compile(r"\D")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def only_digits(value: str | None) -> str:
    return _NON_DIGIT.sub("", value or "")


def _all_same(digits: str) -> bool:
    return len(set(digits)) == 1


# ----------------------------------------------------------------------
# CPF / CNPJ / CEP
# ----------------------------------------------------------------------
def _cpf_digit(digits: str, size: int) -> int:
    total = sum(int(d) * (size + 1 - i) for i, d in enumerate(digits[:size]))
    rest = (total * 10) % 11
    return 0 if rest in (10, 11) else rest


def validate_cpf(cpf: str) -> bool:
    digits = only_digits(cpf)
    if len(digits) != 11 or _all_same(digits):
        return False
    return _cpf_digit(digits, 9) == int(digits[9]) and _cpf_digit(digits, 10) == int(digits[10])


_CNPJ_W1 = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
_CNPJ_W2 = [6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]


def _cnpj_digit(digits: str, weights: list[int]) -> int:
    rest = sum(int(d) * w for d, w in zip(digits, weights)) % 11
    return 0 if rest < 2 else 11 - rest


def validate_cnpj(cnpj: str) -> bool:
    digits = only_digits(cnpj)
    if len(digits) != 14 or _all_same(digits):
        return False
    return _cnpj_digit(digits, _CNPJ_W1) == int(digits[12]) and _cnpj_digit(digits, _CNPJ_W2) == int(digits[13])


def validate_cep(cep: str) -> bool:
    digits = only_digits(cep)
    return len(digits) == 8 and not _all_same(digits)


def format_cpf(value: str) -> str:
    d = only_digits(value)[:11]
    if len(d) <= 3:
        return d
    if len(d) <= 6:
        return f"{d[:3]}.{d[3:]}"
    if len(d) <= 9:
        return f"{d[:3]}.{d[3:6]}.{d[6:]}"
    return f"{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}"


def format_cnpj(value: str) -> str:
    d = only_digits(value)[:14]
    if len(d) <= 2:
        return d
    if len(d) <= 5:
        return f"{d[:2]}.{d[2:]}"
    if len(d) <= 8:
        return f"{d[:2]}.{d[2:5]}.{d[5:]}"
    if len(d) <= 12:
        return f"{d[:2]}.{d[2:5]}.{d[5:8]}/{d[8:]}"
    return f"{d[:2]}.{d[2:5]}.{d[5:8]}/{d[8:12]}-{d[12:]}"


def format_cep(value: str) -> str:
    d = only_digits(value)[:8]
    return d if len(d) <= 5 else f"{d[:5]}-{d[5:]}"


# ----------------------------------------------------------------------
# Datas DD/MM/AAAA
# ----------------------------------------------------------------------
def format_date_br(value: str | date | None) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    d = only_digits(value)[:8]
    if len(d) <= 2:
        return d
    if len(d) <= 4:
        return f"{d[:2]}/{d[2:]}"
    return f"{d[:2]}/{d[2:4]}/{d[4:]}"


def parse_date_br_to_iso(value: str) -> Optional[str]:
    d = only_digits(value)
    if len(d) != 8:
        return None
    day, month, year = int(d[:2]), int(d[2:4]), int(d[4:])
    if not 1 <= month <= 12 or not 1 <= day <= 31:
        return None
    if year < 1900 or year > date.today().year:
        return None
    return f"{year:04d}-{month:02d}-{day:02d}"


def parse_iso_to_date_br(value: str | None) -> str:
    if not value:
        return ""
    parts = value[:10].split("-")
    if len(parts) != 3 or not all(parts):
        return ""
    year, month, day = parts
    return f"{day}/{month}/{year}"


@dataclass(frozen=True)
class BirthDateCheck:
    is_valid: bool
    age: Optional[int] = None
    error: Optional[str] = None


def validate_birth_date(value: str, today: date | None = None) -> BirthDateCheck:
    today = today or date.today()
    d = only_digits(value)
    if not d:
        return BirthDateCheck(True)
    if len(d) < 8:
        return BirthDateCheck(False, error="incomplete")
    day, month, year = int(d[:2]), int(d[2:4]), int(d[4:8])
    if not 1 <= month <= 12:
        return BirthDateCheck(False, error="Mês inválido")
    if year < 1 or not 1 <= day <= calendar.monthrange(year, month)[1]:
        return BirthDateCheck(False, error="Dia inválido")
    born = date(year, month, day)
    if born > today:
        return BirthDateCheck(False, error="Data no futuro")
    if year < today.year - 120:
        return BirthDateCheck(False, error="Data muito antiga")
    age = today.year - born.year - ((today.month, today.day) < (born.month, born.day))
    return BirthDateCheck(True, age=age)


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


# ----------------------------------------------------------------------
# Telefones
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class Country:
    code: str
    name: str
    min_length: int
    max_length: int


COUNTRY_CODES: list[Country] = [
    Country("55", "Brasil", 12, 13),
    Country("1", "EUA/Canadá", 11, 11),
    Country("44", "Reino Unido", 12, 13),
    Country("49", "Alemanha", 12, 14),
    Country("33", "França", 11, 12),
    Country("39", "Itália", 12, 13),
    Country("34", "Espanha", 11, 12),
    Country("351", "Portugal", 12, 12),
    Country("54", "Argentina", 12, 13),
    Country("56", "Chile", 11, 12),
    Country("57", "Colômbia", 12, 12),
    Country("52", "México", 12, 13),
    Country("51", "Peru", 11, 12),
    Country("598", "Uruguai", 11, 12),
    Country("595", "Paraguai", 12, 12),
    Country("591", "Bolívia", 11, 12),
    Country("81", "Japão", 12, 13),
    Country("86", "China", 13, 14),
    Country("91", "Índia", 12, 13),
    Country("82", "Coreia do Sul", 12, 13),
    Country("61", "Austrália", 11, 12),
    Country("971", "Emirados Árabes", 12, 13),
    Country("972", "Israel", 12, 12),
    Country("7", "Rússia", 11, 12),
    Country("27", "África do Sul", 11, 12),
    Country("20", "Egito", 12, 12),
    Country("31", "Holanda", 11, 12),
    Country("32", "Bélgica", 11, 12),
    Country("41", "Suíça", 11, 12),
    Country("43", "Áustria", 12, 14),
    Country("45", "Dinamarca", 10, 10),
    Country("46", "Suécia", 11, 13),
    Country("47", "Noruega", 10, 12),
    Country("48", "Polônia", 11, 11),
    Country("90", "Turquia", 12, 12),
    Country("353", "Irlanda", 12, 12),
    Country("358", "Finlândia", 12, 13),
    Country("30", "Grécia", 12, 12),
    Country("380", "Ucrânia", 12, 12),
]
# códigos mais longos primeiro (351 antes de 35...)
_BY_CODE_LENGTH = sorted(COUNTRY_CODES, key=lambda c: len(c.code), reverse=True)

VALID_DDDS = frozenset(
    "11 12 13 14 15 16 17 18 19 21 22 24 27 28 31 32 33 34 35 37 38 "
    "41 42 43 44 45 46 47 48 49 51 53 54 55 61 62 63 64 65 66 67 68 69 "
    "71 73 74 75 77 79 81 82 83 84 85 86 87 88 89 91 92 93 94 95 96 97 98 99".split()
)


@dataclass(frozen=True)
class PhoneCheck:
    is_valid: bool
    country: Optional[Country] = None
    error: Optional[str] = None
    ddd_valid: bool = True
    length_valid: bool = True


def detect_country_from_phone(phone: str) -> Optional[tuple[Country, bool]]:
    """Retorna (país, comprimento_ok) pelo prefixo mais longo que casar."""
    digits = only_digits(phone)
    if len(digits) < 2:
        return None
    for country in _BY_CODE_LENGTH:
        if digits.startswith(country.code):
            return country, country.min_length <= len(digits) <= country.max_length
    return None


def validate_brazilian_ddd(ddd: str) -> bool:
    return ddd in VALID_DDDS


def validate_brazilian_phone(phone: str) -> PhoneCheck:
    digits = only_digits(phone)
    local = digits[2:] if digits.startswith("55") else digits
    length_valid = len(local) in (10, 11)
    ddd_valid = validate_brazilian_ddd(local[:2])
    number = local[2:]
    number_valid = len(number) == 8 or (len(number) == 9 and number.startswith("9"))
    return PhoneCheck(
        is_valid=length_valid and ddd_valid and number_valid,
        ddd_valid=ddd_valid,
        length_valid=length_valid,
    )


def validate_international_phone(phone: str) -> PhoneCheck:
    digits = only_digits(phone)
    if not digits:
        return PhoneCheck(False)
    detected = detect_country_from_phone(digits)
    country = detected[0] if detected else None
    if len(digits) < 8:
        return PhoneCheck(False, country=country, error="incomplete")
    if not detected:
        ok = 10 <= len(digits) <= 15
        return PhoneCheck(ok, error=None if len(digits) >= 10 else "Número muito curto")
    country, length_ok = detected
    if country.code == "55":
        br = validate_brazilian_phone(digits)
        error = None
        if not br.ddd_valid:
            error = "DDD inválido"
        elif not br.is_valid:
            error = "Número inválido"
        return PhoneCheck(br.is_valid, country=country, error=error, ddd_valid=br.ddd_valid, length_valid=br.length_valid)
    return PhoneCheck(length_ok, country=country, error=None if length_ok else f"Número inválido para {country.name}")


def format_brazilian_phone(value: str) -> str:
    digits = only_digits(value)
    if digits and not digits.startswith("55") and len(digits) <= 11:
        digits = "55" + digits
    digits = digits[:13]
    if len(digits) <= 2:
        return f"+{digits}" if digits else ""
    if len(digits) <= 4:
        return f"+{digits[:2]} {digits[2:]}"
    if len(digits) <= 9:
        return f"+{digits[:2]} {digits[2:4]} {digits[4:]}"
    ddd, number = digits[2:4], digits[4:]
    if len(number) <= 8:
        return f"+{digits[:2]} {ddd} {number[:4]}-{number[4:]}"
    return f"+{digits[:2]} {ddd} {number[:5]}-{number[5:]}"


def normalize_phone_e164(phone: str | None) -> str:
    """'(11) 99999-0000' -> '+5511999990000'; números com DDI são mantidos."""
    digits = only_digits(phone)
    if not digits:
        return ""
    if not digits.startswith("55") and len(digits) <= 11:
        digits = "55" + digits
    return "+" + digits
