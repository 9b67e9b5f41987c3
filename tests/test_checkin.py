import csv
import io
from datetime import datetime, timezone

import pytest

from crm.core.errors import NotFoundError, ValidationFailed
from crm.models.event import Event
from crm.services import checkin


class TestCode:
    @pytest.mark.parametrize("raw,expected", [("abc123", "ABC123"), (" X9Y8Z7 ", "X9Y8Z7"), ("<AB>C123", "ABC123")])
    def test_normalize(self, raw, expected):
        assert checkin.normalize_code(raw) == expected

    @pytest.mark.parametrize("raw", ["ABC12", "ABC1234", "ABC-12", ""])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValidationFailed):
            checkin.normalize_code(raw)

    def test_only_in_person_events_keep_a_code(self, db):
        event = Event(account_id=1, title="X", modality="presencial", scheduled_at=datetime.now(timezone.utc))
        checkin.sync_code(db, event)
        code = event.checkin_code
        assert len(code) == 6 and code.isalnum() and code.upper() == code
        checkin.sync_code(db, event)
        assert event.checkin_code == code
        event.modality = "online"
        checkin.sync_code(db, event)
        assert event.checkin_code is None

    def test_qr_png(self):
        assert checkin.qr_png("ABC123").startswith(b"\x89PNG")

    def test_phone_for_checkin(self):
        assert checkin.phone_for_checkin("(11) 98765-4321") == "+5511987654321"
        assert checkin.phone_for_checkin("55 11 98765-4321") == "+5511987654321"
        with pytest.raises(ValidationFailed):
            checkin.phone_for_checkin("1234")


class TestParticipationRate:
    def test_rates(self):
        assert checkin.participation_rate(0, 0) == 0
        assert checkin.participation_rate(0, 3) == 100
        assert checkin.participation_rate(3, 2) == 67
        assert checkin.participation_rate(4, 4) == 100

    def test_csv(self):
        rows = [{"title": 'Live "especial"', "scheduled_at": None, "address": None,
                 "total_expected": 4, "total_attended": 3, "participation_rate": 75}]
        parsed = list(csv.reader(io.StringIO(checkin.report_csv(rows))))
        assert parsed[0] == ["Evento", "Data", "Local", "Esperados", "Presentes", "Taxa"]
        assert parsed[1] == ['Live "especial"', "-", "-", "4", "3", "75%"]
        assert checkin.report_csv(rows).splitlines()[0].startswith('"Evento"')


# ----------------------------------------------------------------------
# Fluxo público
# ----------------------------------------------------------------------
@pytest.fixture
def in_person(http, admin_headers, url):
    event = http.post(url("/events"), headers=admin_headers, json={
        "title": "Imersão SP", "modality": "presencial", "scheduled_at": "2030-05-01T13:00:00Z",
        "address": "Av. Paulista, 1000",
    }).json()
    client = http.post(url("/clients"), headers=admin_headers,
                       json={"full_name": "Gabi", "phone_e164": "11955550000"}).json()
    http.post(url(f"/events/{event['id']}/participants"), headers=admin_headers,
              json={"client_id": client["id"], "rsvp_status": "confirmed"})
    http.post(url(f"/events/{event['id']}/participants"), headers=admin_headers,
              json={"guest_name": "Heitor", "rsvp_status": "declined"})
    return event


class TestPublicCheckin:
    def test_event_gets_code(self, in_person, http, admin_headers, url):
        assert len(in_person["checkin_code"]) == 6
        online = http.post(url("/events"), headers=admin_headers, json={
            "title": "Live", "modality": "online", "scheduled_at": "2030-05-01T13:00:00Z"}).json()
        assert online["checkin_code"] is None

    def test_lookup(self, in_person, http):
        r = http.get(f"/api/v1/public/checkin/{in_person['checkin_code'].lower()}")
        assert r.status_code == 200
        assert r.json()["title"] == "Imersão SP"
        assert http.get("/api/v1/public/checkin/ZZZZZZ").status_code == 404
        assert http.get("/api/v1/public/checkin/abc").status_code == 422

    def test_register_twice(self, in_person, http, admin_headers, url):
        body = {"code": in_person["checkin_code"], "phone": "(11) 95555-0000"}
        r = http.post("/api/v1/public/checkin", json=body)
        assert r.status_code == 200, r.text
        assert r.json()["already_checked_in"] is False
        assert r.json()["client_name"] == "Gabi"

        r = http.post("/api/v1/public/checkin", json=body)
        assert r.json()["already_checked_in"] is True
        assert r.json()["message"] == "Você já fez check-in neste evento!"

        participants = http.get(url(f"/events/{in_person['id']}/participants"), headers=admin_headers).json()
        assert participants[0]["rsvp_status"] == "attended"

    def test_unknown_phone(self, in_person, http):
        r = http.post("/api/v1/public/checkin", json={"code": in_person["checkin_code"], "phone": "11900001111"})
        assert r.status_code == 404
        assert r.json()["code"] == "NOT_FOUND"

    def test_missing_fields(self, http):
        r = http.post("/api/v1/public/checkin", json={"code": "ABC123"})
        assert r.status_code == 422

    def test_report(self, in_person, http, admin_headers, url):
        http.post("/api/v1/public/checkin", json={"code": in_person["checkin_code"], "phone": "11955550000"})
        report = http.get(url("/events/attendance-report"), headers=admin_headers).json()
        assert report["total_events"] == 1
        # convidado que recusou não conta como esperado
        assert (report["total_expected"], report["total_attended"], report["overall_rate"]) == (1, 1, 100)

        r = http.get(url("/events/attendance-report.csv"), headers=admin_headers)
        assert r.headers["content-type"].startswith("text/csv")
        assert "relatorio-presencas-" in r.headers["content-disposition"]
        lines = r.text.splitlines()
        assert lines[1].startswith('"Imersão SP"')
        assert lines[1].endswith('"100%"')

    def test_qr_route(self, in_person, http, admin_headers, url):
        r = http.get(url(f"/events/{in_person['id']}/qr.png"), headers=admin_headers)
        assert r.status_code == 200
        assert r.headers["content-type"] == "image/png"


def test_register_service_requires_known_code(db, account):
    with pytest.raises(NotFoundError):
        checkin.register(db, "QQQQQQ", "11955550000")
