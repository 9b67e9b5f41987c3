from decimal import Decimal

import pytest
from sqlalchemy import select

from crm.core.errors import ConflictError, ValidationFailed
from crm.models.client import Client
from crm.models.event import Event
from crm.models.product import Product
from crm.models.user import User
from crm.services import onboarding as svc


class TestHelpers:
    @pytest.mark.parametrize("raw,expected", [
        ("R$ 1.234,56", Decimal("1234.56")),
        ("97,00", Decimal("97.00")),
        ("150", Decimal("150")),
        ("", Decimal(0)),
        ("grátis", Decimal(0)),
    ])
    def test_parse_price(self, raw, expected):
        assert svc.parse_price(raw) == expected

    def test_onboarding_phone(self):
        assert svc.onboarding_phone("(11) 99999-8888") == "+5511999998888"
        assert svc.onboarding_phone("+55 11 99999-8888") == "+5511999998888"

    def test_invite_emails(self):
        assert svc.invite_emails(" Ana@X.com , ,bia@x.com") == ["ana@x.com", "bia@x.com"]

    def test_event_start_defaults_to_nine(self):
        start = svc.event_start("2030-02-01", "")
        assert (start.hour, start.minute) == (9, 0)
        with pytest.raises(ValidationFailed):
            svc.event_start("01/02/2030", None)


class TestWizard:
    def test_initial_state(self, account):
        state = svc.state(account)
        assert state["step"] == 1
        assert state["can_skip"] is False
        assert state["data"]["accountName"] == "Acme Cursos"
        assert state["unlocked_count"] == 1

    def test_required_steps_cannot_be_skipped(self, db, account):
        with pytest.raises(ValidationFailed):
            svc.skip_step(db, account)

    def test_navigation_and_skip(self, db, account):
        svc.next_step(db, account)
        state = svc.next_step(db, account)
        assert state["step"] == 3
        assert state["completed_steps"] == [1, 2]
        state = svc.skip_step(db, account)
        assert state["step"] == 4
        assert state["skipped_steps"] == [3]
        state = svc.prev_step(db, account)
        assert state["step"] == 3

    def test_update_data_unlocks_achievement(self, db, account):
        state = svc.update_data(db, account, {"productName": "Mentoria", "bogus": 1})
        assert state["pending_achievement"] == "first_product"
        assert "bogus" not in state["data"]
        state = svc.dismiss_achievement(db, account)
        assert state["pending_achievement"] is None

    def test_completion_creates_records(self, db, account):
        svc.update_data(db, account, {
            "accountName": "Acme Educação",
            "clientName": "Iara", "clientPhone": "(11) 97777-6666", "clientEmail": "iara@x.com",
            "productName": "Curso", "productPrice": "R$ 1.234,56",
            "eventTitle": "Encontro", "eventDate": "2030-02-01", "eventTime": "19:30",
            "eventModality": "presencial", "eventAddress": "Rua B, 2",
            "inviteEmails": "joao@acme.com.br, invalido, admin@acme.com.br",
        })
        for _ in range(6):
            state = svc.next_step(db, account)

        assert state["completed"] is True
        assert state["progress"] == 100
        unlocked = {a["id"] for a in state["achievements"] if a["unlocked"]}
        assert {"complete_setup", "first_client", "team_builder"} <= unlocked
        assert "speed_runner" not in unlocked
        assert account.name == "Acme Educação"

        client = db.scalar(select(Client).where(Client.account_id == account.id))
        assert client.phone_e164 == "+5511977776666"
        assert db.scalar(select(Product).where(Product.account_id == account.id)).price == Decimal("1234.56")
        event = db.scalar(select(Event).where(Event.account_id == account.id))
        assert len(event.checkin_code) == 6
        assert event.address == "Rua B, 2"

        invited = db.scalars(select(User).where(User.account_id == account.id, User.status == "invited")).all()
        assert [u.email for u in invited] == ["joao@acme.com.br"]
        assert [r.name for r in invited[0].roles] == ["member"]

        with pytest.raises(ConflictError):
            svc.next_step(db, account)

    def test_skipped_steps_create_nothing(self, db, account):
        svc.update_data(db, account, {"clientName": "Iara", "clientPhone": "11977776666", "productName": "Curso"})
        svc.next_step(db, account)
        svc.next_step(db, account)
        for _ in range(4):
            svc.skip_step(db, account)
        assert account.onboarding_completed
        assert db.scalar(select(Client).where(Client.account_id == account.id)) is None
        assert db.scalar(select(Product).where(Product.account_id == account.id)) is None


class TestOnboardingApi:
    def test_flow(self, http, admin_headers, url):
        r = http.get(url("/onboarding"), headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["total_achievements"] == 9

        r = http.put(url("/onboarding/data"), headers=admin_headers, json={"enableAI": True, "accountName": "Nova"})
        assert r.json()["pending_achievement"] == "ai_enabled"
        r = http.post(url("/onboarding/achievements/dismiss"), headers=admin_headers)
        assert r.json()["pending_achievement"] is None

        assert http.post(url("/onboarding/skip"), headers=admin_headers).status_code == 422
        assert http.post(url("/onboarding/next"), headers=admin_headers).json()["step"] == 2
        assert http.post(url("/onboarding/prev"), headers=admin_headers).json()["step"] == 1

    def test_completion_invites_team(self, http, admin_headers, url):
        http.put(url("/onboarding/data"), headers=admin_headers, json={"inviteEmails": "novo@acme.com.br"})
        for _ in range(6):
            r = http.post(url("/onboarding/next"), headers=admin_headers)
        assert r.json()["completed"] is True
        assert http.post(url("/onboarding/next"), headers=admin_headers).status_code == 409

        users = http.get(url("/users"), headers=admin_headers).json()
        invited = next(u for u in users if u["email"] == "novo@acme.com.br")
        assert invited["status"] == "invited"

    def test_admin_only(self, http, member_headers, url):
        assert http.get(url("/onboarding"), headers=member_headers).status_code == 403
