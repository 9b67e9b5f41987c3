from datetime import date
from decimal import Decimal

import pytest

from crm.core.errors import ValidationFailed
from crm.models.custom_field import ClientFieldValue, CustomField
from crm.services import custom_fields as svc


class TestOptions:
    def test_blank_labels_are_dropped_and_values_generated(self):
        options = svc.normalize_options("select", [
            {"label": " Sim ", "color": "green"},
            {"label": "", "color": "red"},
            {"value": "nao", "label": "Não"},
        ])
        assert [o["label"] for o in options] == ["Sim", "Não"]
        assert options[0]["value"].startswith("opt_")
        assert options[1] == {"value": "nao", "label": "Não", "color": "gray"}

    def test_choice_field_needs_at_least_one_option(self):
        with pytest.raises(ValidationFailed):
            svc.normalize_options("multi_select", [{"label": "  "}])

    def test_non_choice_fields_have_no_options(self):
        assert svc.normalize_options("text", [{"label": "x"}]) == []

    def test_duplicate_values(self):
        with pytest.raises(ValidationFailed):
            svc.normalize_options("select", [{"value": "a", "label": "A"}, {"value": "a", "label": "B"}])


class TestDisplay:
    def _field(self, kind, options=None):
        return CustomField(name="Campo", field_type=kind, options=options or [])

    def test_boolean(self):
        f = self._field("boolean")
        assert svc.display_value(f, True) == {"text": "Sim", "color": "green"}
        assert svc.display_value(f, False) == {"text": "Não", "color": "red"}
        assert svc.display_value(f, None)["text"] == "—"

    def test_select_and_multi_select(self):
        options = [{"value": "a", "label": "Ouro", "color": "yellow"}, {"value": "b", "label": "Prata", "color": "gray"}]
        assert svc.display_value(self._field("select", options), "a") == {"text": "Ouro", "color": "yellow"}
        shown = svc.display_value(self._field("multi_select", options), ["b", "a"])
        assert shown["text"] == "Prata, Ouro"
        assert len(shown["labels"]) == 2
        assert svc.display_value(self._field("select", options), "zzz")["text"] == "—"

    def test_currency_number_and_date(self):
        assert svc.display_value(self._field("currency"), Decimal("1234.5"))["text"] == "R$ 1.234,50"
        assert svc.display_value(self._field("number"), Decimal("42.00"))["text"] == "42"
        assert svc.display_value(self._field("number"), Decimal("2.50"))["text"] == "2.5"
        assert svc.display_value(self._field("date"), date(2024, 3, 5))["text"] == "05/03/2024"

    def test_user(self):
        assert svc.display_value(self._field("user"), [1, 2], {1: "Ana", 2: "Bia"})["text"] == "Ana, Bia"
        assert svc.display_value(self._field("user"), [])["text"] == "—"


class TestValueStorage:
    @pytest.fixture
    def client(self, db, account):
        from crm.models.client import Client

        c = Client(account_id=account.id, full_name="Eva", phone_e164="+5511955554444")
        db.add(c)
        db.commit()
        return c

    def _field(self, db, account, kind, **kw):
        f = CustomField(account_id=account.id, name=kind, field_type=kind, **kw)
        db.add(f)
        db.commit()
        return f

    def test_exactly_one_column_is_filled(self, db, account, client):
        field = self._field(db, account, "number")
        row = svc.upsert_value(db, client.id, field, "number", "10.5")
        assert row.value_number == Decimal("10.5")
        assert row.value_text is None and row.value_json is None and row.value_boolean is None

    def test_rewrite_replaces_value(self, db, account, client):
        field = self._field(db, account, "text")
        svc.upsert_value(db, client.id, field, "text", "primeiro")
        svc.upsert_value(db, client.id, field, "text", "segundo")
        rows = db.query(ClientFieldValue).filter_by(client_id=client.id, field_id=field.id).all()
        assert len(rows) == 1
        assert rows[0].value_text == "segundo"

    def test_kind_must_match_field(self, db, account, client):
        field = self._field(db, account, "boolean")
        with pytest.raises(ValidationFailed):
            svc.upsert_value(db, client.id, field, "text", "sim")

    def test_select_rejects_unknown_option(self, db, account, client):
        field = self._field(db, account, "select", options=[{"value": "a", "label": "A", "color": "green"}])
        with pytest.raises(ValidationFailed):
            svc.upsert_value(db, client.id, field, "select", "b")

    def test_required_field(self, db, account, client):
        field = self._field(db, account, "text", is_required=True)
        with pytest.raises(ValidationFailed):
            svc.upsert_value(db, client.id, field, "text", "   ")

    def test_user_field_checks_account_users(self, db, account, client):
        field = self._field(db, account, "user")
        admin_id = account.users[0].id
        row = svc.upsert_value(db, client.id, field, "user", [admin_id, admin_id])
        assert row.value_json == [admin_id]
        with pytest.raises(ValidationFailed):
            svc.upsert_value(db, client.id, field, "user", [9999])


class TestCustomFieldsApi:
    def test_create_reorder_and_set_value(self, http, admin_headers, url):
        r = http.post(url("/custom-fields"), headers=admin_headers, json={
            "name": "Plano", "field_type": "select",
            "options": [{"label": "Ouro", "color": "yellow"}, {"label": "Prata"}],
        })
        assert r.status_code == 201, r.text
        plano = r.json()
        assert plano["display_order"] == 0
        vip = http.post(url("/custom-fields"), headers=admin_headers,
                        json={"name": "VIP", "field_type": "boolean", "show_in_clients": False}).json()
        assert vip["display_order"] == 1

        ordered = http.put(url("/custom-fields/reorder"), headers=admin_headers,
                           json={"ids": [vip["id"], plano["id"]]}).json()
        assert [f["id"] for f in ordered] == [vip["id"], plano["id"]]

        visible = http.get(url("/custom-fields"), headers=admin_headers, params={"clients_view": True}).json()
        assert [f["id"] for f in visible] == [plano["id"]]

        client = http.post(url("/clients"), headers=admin_headers,
                           json={"full_name": "Fábio", "phone_e164": "11944443333"}).json()
        gold = plano["options"][0]["value"]
        r = http.put(url(f"/clients/{client['id']}/fields/{plano['id']}"), headers=admin_headers,
                     json={"kind": "select", "value": gold})
        assert r.status_code == 200, r.text
        assert r.json()["display"] == {"text": "Ouro", "color": "yellow"}

        r = http.put(url(f"/clients/{client['id']}/fields/{plano['id']}"), headers=admin_headers,
                     json={"kind": "boolean", "value": True})
        assert r.status_code == 422

        fields = http.get(url(f"/clients/{client['id']}/fields"), headers=admin_headers).json()
        assert {f["name"]: f["display"]["text"] for f in fields} == {"VIP": "—", "Plano": "Ouro"}

    def test_members_cannot_change_schema(self, http, member_headers, url):
        r = http.post(url("/custom-fields"), headers=member_headers, json={"name": "X", "field_type": "text"})
        assert r.status_code == 403
