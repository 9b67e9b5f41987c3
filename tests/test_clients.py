import pytest

from crm.core.errors import ValidationFailed
from crm.services import storage
from crm.services.clients import list_clients


@pytest.fixture
def seeded(http, admin_headers, url):
    def create(**body):
        r = http.post(url("/clients"), headers=admin_headers, json=body)
        assert r.status_code == 201, r.text
        return r.json()

    return {
        "ana": create(full_name="Ana Prado", phone_e164="11911112222", tags=["vip", " vip ", "curso"]),
        "bruno": create(full_name="Bruno Reis", phone_e164="21988887777", status="lead"),
        "carla": create(full_name="Carla Dias", phone_e164="+351912345678", status="churn", tags=["curso"]),
    }


class TestClientValidation:
    def test_normalizes_documents_and_phone(self, http, admin_headers, url):
        r = http.post(url("/clients"), headers=admin_headers, json={
            "full_name": "Davi", "phone_e164": "(11) 98765-4321", "cpf": "52998224725",
            "zip_code": "01310100", "birth_date": "10/05/1990",
            "emails": [{"email": "davi@x.com"}], "additional_phones": ["", "21 99999-0000"],
        })
        assert r.status_code == 201, r.text
        c = r.json()
        assert c["phone_e164"] == "+5511987654321"
        assert c["cpf"] == "529.982.247-25"
        assert c["zip_code"] == "01310-100"
        assert c["birth_date"] == "1990-05-10"
        assert c["emails"] == [{"email": "davi@x.com", "type": "main"}]
        assert c["additional_phones"] == ["+5521999990000"]

    @pytest.mark.parametrize("field,value,message", [
        ("cpf", "111.111.111-11", "CPF inválido"),
        ("cnpj", "11.222.333/0001-82", "CNPJ inválido"),
        ("zip_code", "00000-000", "CEP inválido"),
        ("phone_e164", "+55 20 98765-4321", "DDD inválido"),
        ("birth_date", "31/02/2000", "Dia inválido"),
    ])
    def test_rejects_invalid_fields(self, http, admin_headers, url, field, value, message):
        body = {"full_name": "Eva", "phone_e164": "11911110000", field: value}
        r = http.post(url("/clients"), headers=admin_headers, json=body)
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"
        assert r.json()["message"] == message


class TestClientList:
    def test_filters(self, http, admin_headers, url, seeded):
        def names(**params):
            page = http.get(url("/clients"), headers=admin_headers, params=params).json()
            return [c["full_name"] for c in page["items"]]

        assert names(status="lead") == ["Bruno Reis"]
        assert names(tag="curso", sort="name", order="asc") == ["Ana Prado", "Carla Dias"]
        assert names(q="bru") == ["Bruno Reis"]
        assert names(q="35191") == ["Carla Dias"]
        assert names(sort="name", order="asc", limit=1, offset=1) == ["Bruno Reis"]
        assert seeded["ana"]["tags"] == ["vip", "curso"]

    def test_total_ignores_pagination(self, http, admin_headers, url, seeded):
        page = http.get(url("/clients"), headers=admin_headers, params={"limit": 1}).json()
        assert (len(page["items"]), page["total"], page["limit"]) == (1, 3, 1)

    def test_filter_by_product_contract(self, http, admin_headers, url, seeded):
        product = http.post(url("/products"), headers=admin_headers, json={"name": "Mentoria", "price": "997"}).json()
        http.post(url(f"/clients/{seeded['bruno']['id']}/contracts"), headers=admin_headers,
                  json={"start_date": "2024-01-01", "product_id": product["id"]})
        page = http.get(url("/clients"), headers=admin_headers, params={"product_id": product["id"]}).json()
        assert [c["id"] for c in page["items"]] == [seeded["bruno"]["id"]]

    def test_unknown_sort(self, db, account):
        with pytest.raises(ValidationFailed):
            list_clients(db, account.id, sort="password")

    def test_other_accounts_are_invisible(self, http, admin_headers, url, seeded):
        http.post("/api/v1/accounts", json={"name": "Outra", "slug": "outra", "admin_name": "O",
                                            "admin_email": "o@outra.com", "admin_password": "senha-outra-1"})
        r = http.post("/api/v1/outra/auth/login", json={"username": "o@outra.com", "password": "senha-outra-1"})
        other = {"Authorization": f"Bearer {r.json()['access_token']}"}
        assert http.get("/api/v1/outra/clients", headers=other).json()["total"] == 0
        assert http.get(f"/api/v1/outra/clients/{seeded['ana']['id']}", headers=other).status_code == 404


class TestClientEditing:
    def test_partial_update_and_clear_lists(self, http, admin_headers, url, seeded):
        cid = seeded["ana"]["id"]
        r = http.put(url(f"/clients/{cid}"), headers=admin_headers, json={"notes": "Prefere WhatsApp", "tags": None})
        assert r.json()["notes"] == "Prefere WhatsApp"
        assert r.json()["tags"] == []
        assert r.json()["full_name"] == "Ana Prado"

    def test_members_cannot_delete(self, http, admin_headers, member_headers, url, seeded):
        cid = seeded["ana"]["id"]
        assert http.delete(url(f"/clients/{cid}"), headers=member_headers).status_code == 403
        assert http.delete(url(f"/clients/{cid}"), headers=admin_headers).status_code == 204
        assert http.get(url(f"/clients/{cid}"), headers=admin_headers).status_code == 404

    def test_avatar_accepts_images_only(self, http, admin_headers, url, seeded):
        cid = seeded["ana"]["id"]
        r = http.post(url(f"/clients/{cid}/avatar"), headers=admin_headers,
                      files={"file": ("foto.pdf", b"%PDF", "application/pdf")})
        assert r.status_code == 422
        r = http.post(url(f"/clients/{cid}/avatar"), headers=admin_headers,
                      files={"file": ("minha foto.png", b"\x89PNG....", "image/png")})
        assert r.status_code == 200
        assert r.json()["avatar_url"].endswith("_minha_foto.png")
        assert http.get(r.json()["avatar_url"]).status_code == 200


class TestFollowups:
    def test_thread_and_detail(self, http, admin_headers, url, seeded):
        cid = seeded["bruno"]["id"]
        first = http.post(url(f"/clients/{cid}/followups"), headers=admin_headers,
                          json={"type": "call", "title": "Primeiro contato", "content": "Interessado"}).json()
        reply = http.post(url(f"/clients/{cid}/followups"), headers=admin_headers,
                          json={"content": "Retornar sexta", "parent_id": first["id"]}).json()
        assert reply["parent_id"] == first["id"]
        assert reply["type"] == "note"

        other = seeded["ana"]["id"]
        r = http.post(url(f"/clients/{other}/followups"), headers=admin_headers,
                      json={"content": "x", "parent_id": first["id"]})
        assert r.status_code == 422

        r = http.post(url(f"/clients/{cid}/followups/upload"), headers=admin_headers,
                      data={"type": "meeting", "title": "Ata"},
                      files={"file": ("ata.txt", b"pauta", "text/plain")})
        assert r.status_code == 201, r.text
        assert r.json()["file_name"] == "ata.txt"

        detail = http.get(url(f"/clients/{cid}"), headers=admin_headers).json()
        assert detail["client"]["id"] == cid
        assert len(detail["followups"]) == 3
        assert detail["contracts"] == []

        r = http.put(url(f"/clients/{other}/followups/{first['id']}"), headers=admin_headers, json={"title": "x"})
        assert r.status_code == 422
        assert http.delete(url(f"/clients/{cid}/followups/{reply['id']}"), headers=admin_headers).status_code == 204


class TestStorage:
    def test_safe_name(self):
        assert storage.safe_name("../../etc/passwd") == "passwd"
        assert storage.safe_name("relatório final.pdf") == "relat_rio_final.pdf"
        assert storage.safe_name("") == "arquivo"

    def test_rejects_empty_and_large(self, monkeypatch):
        with pytest.raises(ValidationFailed):
            storage.save("x", "1", "a.txt", b"")
        monkeypatch.setattr(storage, "MAX_UPLOAD_BYTES", 3)
        with pytest.raises(ValidationFailed):
            storage.save("x", "1", "a.txt", b"abcd")
