# crm/services/custom_fields.py
"""
Campos personalizados: esquema por conta + um valor por (cliente, campo).

O valor é gravado em exatamente uma coluna tipada, escolhida pelo tipo do
campo; as demais ficam NULL. Quem chama entrega um valor já "etiquetado"
com o tipo (``kind``), que precisa bater com o tipo do campo.
"""
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.errors import ValidationFailed
from crm.core.validators import format_date_br
from crm.models.custom_field import ClientFieldValue, CustomField, FIELD_TYPES, OPTION_COLORS
from crm.models.user import User

log = structlog.get_logger(__name__)

CHOICE_KINDS = frozenset({"select", "multi_select"})

VALUE_COLUMNS = ("value_text", "value_number", "value_boolean", "value_date", "value_json")

COLUMN_FOR_KIND = {
    "boolean": "value_boolean",
    "number": "value_number",
    "currency": "value_number",
    "date": "value_date",
    "select": "value_text",
    "text": "value_text",
    "multi_select": "value_json",
    "user": "value_json",
}

DEFAULT_OPTIONS = [
    {"value": "opt_1", "label": "", "color": "green"},
    {"value": "opt_2", "label": "", "color": "red"},
]

EMPTY = "—"


# ----------------------------------------------------------------------
# Esquema
# ----------------------------------------------------------------------
def normalize_options(kind: str, options: Iterable[dict] | None) -> list[dict]:
    """Descarta opções sem rótulo, gera ``value`` quando ausente e valida cores."""
    if kind not in CHOICE_KINDS:
        return []
    cleaned: list[dict] = []
    seen: set[str] = set()
    for opt in options or []:
        label = (opt.get("label") or "").strip()
        if not label:
            continue
        value = opt.get("value") or f"opt_{uuid.uuid4().hex[:12]}"
        if value in seen:
            raise ValidationFailed(f"Opção duplicada: {value}")
        color = opt.get("color") or "gray"
        if color not in OPTION_COLORS:
            raise ValidationFailed(f"Cor inválida: {color}")
        seen.add(value)
        cleaned.append({"value": value, "label": label, "color": color})
    if not cleaned:
        raise ValidationFailed("Adicione pelo menos uma opção")
    return cleaned


def list_active_fields(db: Session, account_id: int, only_clients_view: bool = False) -> list[CustomField]:
    stmt = select(CustomField).where(CustomField.account_id == account_id, CustomField.is_active.is_(True))
    if only_clients_view:
        stmt = stmt.where(CustomField.show_in_clients.is_(True))
    return list(db.scalars(stmt.order_by(CustomField.display_order, CustomField.id)).all())


def reorder_fields(db: Session, account_id: int, ordered_ids: list[int]) -> list[CustomField]:
    fields = {f.id: f for f in list_active_fields(db, account_id)}
    unknown = [i for i in ordered_ids if i not in fields]
    if unknown:
        raise ValidationFailed("Campos desconhecidos na ordenação.", details={"ids": unknown})
    for position, field_id in enumerate(ordered_ids):
        fields[field_id].display_order = position
    db.commit()
    return list_active_fields(db, account_id)


# ----------------------------------------------------------------------
# Valores
# ----------------------------------------------------------------------
def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def _coerce(field: CustomField, value: Any, db: Session) -> Any:
    kind = field.field_type
    if _is_empty(value):
        return None
    if kind == "select":
        allowed = {o["value"] for o in field.options or []}
        if value not in allowed:
            raise ValidationFailed("Opção inválida para o campo.", details={"field": field.name, "value": value})
        return value
    if kind == "multi_select":
        allowed = {o["value"] for o in field.options or []}
        values = list(dict.fromkeys(value))
        bad = [v for v in values if v not in allowed]
        if bad:
            raise ValidationFailed("Opção inválida para o campo.", details={"field": field.name, "value": bad})
        return values
    if kind == "user":
        ids = list(dict.fromkeys(int(v) for v in value))
        found = set(db.scalars(select(User.id).where(User.account_id == field.account_id, User.id.in_(ids))).all())
        if found != set(ids):
            raise ValidationFailed("Usuário não encontrado")
        return ids
    if kind in ("number", "currency"):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise ValidationFailed("Número inválido.", details={"field": field.name})
    if kind == "text":
        return str(value).strip() or None
    return value


def read_value(row: Optional[ClientFieldValue], kind: str) -> Any:
    if row is None:
        return None
    return getattr(row, COLUMN_FOR_KIND[kind])


def upsert_value(db: Session, client_id: int, field: CustomField, kind: str, value: Any) -> ClientFieldValue:
    if kind not in FIELD_TYPES or kind != field.field_type:
        raise ValidationFailed(
            "Tipo do valor não corresponde ao tipo do campo.",
            details={"field_type": field.field_type, "kind": kind},
        )
    coerced = _coerce(field, value, db)
    if coerced is None and field.is_required:
        raise ValidationFailed(f"O campo {field.name} é obrigatório.")

    row = db.scalar(
        select(ClientFieldValue).where(ClientFieldValue.client_id == client_id, ClientFieldValue.field_id == field.id)
    )
    if row is None:
        row = ClientFieldValue(client_id=client_id, field_id=field.id)
        db.add(row)
    for column in VALUE_COLUMNS:
        setattr(row, column, None)
    setattr(row, COLUMN_FOR_KIND[kind], coerced)
    db.commit()
    db.refresh(row)
    log.debug("custom_field.value_saved", client_id=client_id, field_id=field.id, kind=kind)
    return row


def values_for_client(db: Session, client_id: int) -> dict[int, ClientFieldValue]:
    rows = db.scalars(select(ClientFieldValue).where(ClientFieldValue.client_id == client_id)).all()
    return {r.field_id: r for r in rows}


# ----------------------------------------------------------------------
# Exibição (badge)
# ----------------------------------------------------------------------
def format_brl(value: Decimal | float | int) -> str:
    """1234.5 -> 'R$ 1.234,50'"""
    text = f"{Decimal(str(value)):,.2f}"
    return "R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


def display_value(field: CustomField, value: Any, user_names: dict[int, str] | None = None) -> dict:
    """``{"text": ..., "color": ..., "labels": [...]}`` para renderizar o valor."""
    kind = field.field_type
    options = {o["value"]: o for o in field.options or []}

    if kind == "boolean":
        if value is True:
            return {"text": "Sim", "color": "green"}
        if value is False:
            return {"text": "Não", "color": "red"}
        return {"text": EMPTY, "color": None}

    if kind == "select":
        opt = options.get(value)
        if not opt:
            return {"text": EMPTY, "color": None}
        return {"text": opt["label"], "color": opt["color"]}

    if kind == "multi_select":
        chosen = [options[v] for v in (value or []) if v in options]
        if not chosen:
            return {"text": EMPTY, "color": None, "labels": []}
        labels = [{"label": o["label"], "color": o["color"]} for o in chosen]
        return {"text": ", ".join(o["label"] for o in chosen), "color": None, "labels": labels}

    if kind == "user":
        names = [user_names.get(int(i), EMPTY) for i in (value or [])] if user_names else []
        return {"text": ", ".join(names) or EMPTY, "color": None}

    if _is_empty(value):
        return {"text": EMPTY, "color": None}
    if kind == "currency":
        return {"text": format_brl(value), "color": None}
    if kind == "number":
        number = Decimal(str(value))
        text = str(number.quantize(Decimal(1))) if number == number.to_integral_value() else str(number.normalize())
        return {"text": text, "color": None}
    if kind == "date":
        return {"text": format_date_br(value if isinstance(value, date) else date.fromisoformat(str(value))), "color": None}
    return {"text": str(value), "color": None}
