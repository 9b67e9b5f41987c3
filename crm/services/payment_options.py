# crm/services/payment_options.py
"""
Codec da forma de pagamento do contrato.

O contrato guarda uma única string (``payment_option``):

    a_vista                  a_vista_pix
    parcelado_6x             parcelado_6x_boleto

``build_payment_option`` e ``parse_payment_option`` são inversas para
toda combinação válida de (tipo, parcelas, meio).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

PAYMENT_TYPES = {"a_vista": "À Vista", "parcelado": "Parcelado"}
INSTALLMENT_OPTIONS = ("2x", "3x", "4x", "6x", "10x", "12x")
PAYMENT_METHODS = {"pix": "PIX", "boleto": "Boleto", "cartao": "Cartão", "cheque": "Cheque"}


@dataclass(frozen=True)
class PaymentOption:
    type: str = ""
    installments: str = ""
    method: str = ""


def build_payment_option(option: PaymentOption) -> Optional[str]:
    if not option.type:
        return None
    if option.type == "a_vista":
        return f"a_vista_{option.method}" if option.method else "a_vista"
    installments = option.installments or "1x"
    if option.method:
        return f"parcelado_{installments}_{option.method}"
    return f"parcelado_{installments}"


def parse_payment_option(value: Optional[str]) -> PaymentOption:
    if not value:
        return PaymentOption()
    parts = value.split("_")
    if parts[0] == "a" and len(parts) > 1 and parts[1] == "vista":
        return PaymentOption("a_vista", "", parts[2] if len(parts) > 2 else "")
    if parts[0] == "parcelado":
        return PaymentOption(
            "parcelado",
            parts[1] if len(parts) > 1 else "",
            parts[2] if len(parts) > 2 else "",
        )
    return PaymentOption()


def is_valid_payment_option(value: Optional[str]) -> bool:
    if value is None:
        return True
    parsed = parse_payment_option(value)
    if parsed.type not in PAYMENT_TYPES:
        return False
    if parsed.method and parsed.method not in PAYMENT_METHODS:
        return False
    if parsed.type == "parcelado" and parsed.installments not in INSTALLMENT_OPTIONS + ("1x",):
        return False
    return build_payment_option(parsed) == value


def payment_option_label(value: Optional[str]) -> str:
    """'parcelado_6x_pix' -> 'Parcelado 6x · PIX'."""
    parsed = parse_payment_option(value)
    if not parsed.type:
        return "—"
    parts = [PAYMENT_TYPES[parsed.type]]
    if parsed.type == "parcelado" and parsed.installments:
        parts[0] = f"{parts[0]} {parsed.installments}"
    if parsed.method:
        parts.append(PAYMENT_METHODS.get(parsed.method, parsed.method))
    return " · ".join(parts)
