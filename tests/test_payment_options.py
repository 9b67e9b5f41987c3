import pytest

from crm.schemas.contract import ContractCreate
from crm.services.payment_options import (
    INSTALLMENT_OPTIONS, PAYMENT_METHODS, PaymentOption, build_payment_option, is_valid_payment_option,
    parse_payment_option, payment_option_label,
)


class TestBuildAndParse:
    def test_cash(self):
        assert build_payment_option(PaymentOption("a_vista")) == "a_vista"
        assert build_payment_option(PaymentOption("a_vista", method="pix")) == "a_vista_pix"
        assert parse_payment_option("a_vista_pix") == PaymentOption("a_vista", "", "pix")

    def test_installments(self):
        assert build_payment_option(PaymentOption("parcelado", "6x", "boleto")) == "parcelado_6x_boleto"
        assert parse_payment_option("parcelado_12x") == PaymentOption("parcelado", "12x", "")

    def test_missing_installments_defaults_to_one(self):
        assert build_payment_option(PaymentOption("parcelado")) == "parcelado_1x"

    def test_empty(self):
        assert build_payment_option(PaymentOption()) is None
        assert parse_payment_option(None) == PaymentOption()
        assert parse_payment_option("boleto") == PaymentOption()

    def test_every_combination_survives_parse(self):
        for method in ("", *PAYMENT_METHODS):
            cash = PaymentOption("a_vista", "", method)
            assert parse_payment_option(build_payment_option(cash)) == cash
            for installments in INSTALLMENT_OPTIONS:
                split = PaymentOption("parcelado", installments, method)
                assert parse_payment_option(build_payment_option(split)) == split


class TestValidation:
    @pytest.mark.parametrize("value", ["a_vista", "a_vista_cartao", "parcelado_3x", "parcelado_10x_cheque"])
    def test_valid(self, value):
        assert is_valid_payment_option(value)

    @pytest.mark.parametrize("value", ["a_vista_bitcoin", "parcelado_7x", "parcelado", "dinheiro"])
    def test_invalid(self, value):
        assert not is_valid_payment_option(value)

    def test_label(self):
        assert payment_option_label("parcelado_6x_pix") == "Parcelado 6x · PIX"
        assert payment_option_label("a_vista") == "À Vista"
        assert payment_option_label(None) == "—"


class TestContractSchema:
    def test_accepts_structured_option(self):
        body = ContractCreate(start_date="2024-01-01",
                              payment_option={"type": "parcelado", "installments": "4x", "method": "cartao"})
        assert body.payment_option == "parcelado_4x_cartao"

    def test_rejects_unknown_method(self):
        with pytest.raises(ValueError):
            ContractCreate(start_date="2024-01-01", payment_option="a_vista_bitcoin")

    def test_rejects_end_before_start(self):
        with pytest.raises(ValueError):
            ContractCreate(start_date="2024-02-01", end_date="2024-01-01")
