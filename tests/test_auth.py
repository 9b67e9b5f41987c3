from crm.crud.user import user_crud
from crm.schemas.user import UserCreate

from .conftest import ADMIN_EMAIL, ADMIN_PASSWORD, login


class TestAccounts:
    def test_signup_and_duplicate_slug(self, http):
        body = {"name": "Beta Ltda", "slug": "beta", "cnpj": "11222333000181", "admin_name": "Bea",
                "admin_email": "Bea@Beta.com", "admin_password": "senha-da-bea"}
        r = http.post("/api/v1/accounts", json=body)
        assert r.status_code == 201, r.text
        assert r.json()["cnpj"] == "11.222.333/0001-81"
        assert r.json()["onboarding_step"] == 1

        tokens = login(http, "bea@beta.com", "senha-da-bea", slug="beta")
        assert tokens["user"]["roles"] == ["admin"]

        r = http.post("/api/v1/accounts", json=body)
        assert r.status_code == 409
        assert r.json()["code"] == "CONFLICT"

    def test_invalid_cnpj(self, http):
        r = http.post("/api/v1/accounts", json={"name": "X", "slug": "xis", "cnpj": "11.222.333/0001-82",
                                                "admin_name": "X", "admin_email": "x@x.com",
                                                "admin_password": "12345678"})
        assert r.status_code == 422
        assert r.json()["message"] == "CNPJ inválido"

    def test_unknown_tenant(self, http):
        r = http.post("/api/v1/naoexiste/auth/login", json={"username": "a@a.com", "password": "12345678"})
        assert r.status_code == 404

    def test_only_admin_edits_account(self, http, admin_headers, member_headers, url):
        assert http.put(url("/account"), headers=member_headers, json={"name": "Y"}).status_code == 403
        r = http.put(url("/account"), headers=admin_headers, json={"welcome_message": "Bem-vindo!"})
        assert r.json()["welcome_message"] == "Bem-vindo!"


class TestLogin:
    def test_password_policy(self, http, account):
        r = http.post("/api/v1/acme/auth/login", json={"username": ADMIN_EMAIL, "password": "curta"})
        assert r.status_code == 400
        assert r.json()["code"] == "HTTP_400"

    def test_wrong_password(self, http, account):
        r = http.post("/api/v1/acme/auth/login", json={"username": ADMIN_EMAIL, "password": "senha-errada-1"})
        assert r.status_code == 401

    def test_email_is_case_insensitive(self, http, account):
        assert login(http, ADMIN_EMAIL.upper(), ADMIN_PASSWORD)["user"]["email"] == ADMIN_EMAIL

    def test_me(self, http, admin_headers, url):
        r = http.get(url("/auth/me"), headers=admin_headers)
        assert r.json()["email"] == ADMIN_EMAIL
        assert http.get(url("/auth/me")).status_code == 401

    def test_token_is_scoped_to_tenant(self, http, admin_headers):
        http.post("/api/v1/accounts", json={"name": "Outra", "slug": "outra", "admin_name": "O",
                                            "admin_email": "o@outra.com", "admin_password": "senha-outra-1"})
        assert http.get("/api/v1/outra/auth/me", headers=admin_headers).status_code == 401

    def test_refresh_rotates(self, http, account, url):
        first = login(http, ADMIN_EMAIL, ADMIN_PASSWORD)
        r = http.post(url("/auth/refresh"), json={"token": first["refresh_token"]})
        assert r.status_code == 200, r.text
        second = r.json()
        assert second["refresh_token"] != first["refresh_token"]
        # o refresh usado foi revogado
        assert http.post(url("/auth/refresh"), json={"token": first["refresh_token"]}).status_code == 401

        assert http.post(url("/auth/logout"), json={"token": second["refresh_token"]}).json() == {"ok": True}
        assert http.post(url("/auth/refresh"), json={"token": second["refresh_token"]}).status_code == 401

    def test_access_token_is_not_a_refresh_token(self, http, account, url):
        tokens = login(http, ADMIN_EMAIL, ADMIN_PASSWORD)
        assert http.post(url("/auth/refresh"), json={"token": tokens["access_token"]}).status_code == 401

    def test_invited_user_is_activated_on_first_login(self, http, db, account):
        user_crud.create(db, UserCreate(name="Convidada", email="conv@acme.com.br", password="senha-conv-1",
                                        status="invited"), extra={"account_id": account.id})
        tokens = login(http, "conv@acme.com.br", "senha-conv-1")
        assert tokens["user"]["status"] == "active"


class TestUsers:
    def test_admin_creates_and_updates_users(self, http, admin_headers, url):
        r = http.post(url("/users"), headers=admin_headers, json={
            "name": "Gestor", "email": "gestor@acme.com.br", "password": "senha-gestor", "roles": ["manager"]})
        assert r.status_code == 201, r.text
        user = r.json()
        assert user["roles"] == ["manager"]

        r = http.put(url(f"/users/{user['id']}"), headers=admin_headers, json={"roles": ["manager", "member"]})
        assert r.json()["roles"] == ["manager", "member"]

        r = http.post(url("/users"), headers=admin_headers, json={
            "name": "Outro", "email": "GESTOR@acme.com.br", "password": "senha-gestor"})
        assert r.status_code == 409

    def test_members_cannot_create_users(self, http, member_headers, url):
        r = http.post(url("/users"), headers=member_headers, json={
            "name": "X", "email": "x@acme.com.br", "password": "senha-xxxx"})
        assert r.status_code == 403
        assert r.json()["message"] == "Insufficient role"

    def test_delete_deactivates(self, http, admin_headers, url, make_user):
        member = make_user("sai@acme.com.br")
        assert http.delete(url(f"/users/{member.id}"), headers=admin_headers).status_code == 204
        assert http.get(url(f"/users/{member.id}"), headers=admin_headers).json()["status"] == "inactive"
        r = http.post(url("/auth/login"), json={"username": "sai@acme.com.br", "password": "senha-membro-1"})
        assert r.status_code == 401

    def test_admin_cannot_lock_themself_out(self, http, admin_headers, url):
        me = http.get(url("/auth/me"), headers=admin_headers).json()
        assert http.delete(url(f"/users/{me['id']}"), headers=admin_headers).status_code == 400
        r = http.put(url(f"/users/{me['id']}"), headers=admin_headers, json={"roles": ["member"]})
        assert r.status_code == 400


class TestIdempotency:
    def test_replays_stored_response(self, http, admin_headers, url):
        headers = {**admin_headers, "Idempotency-Key": "cliente-1"}
        body = {"full_name": "Joana", "phone_e164": "11988880000"}
        first = http.post(url("/clients"), headers=headers, json=body)
        second = http.post(url("/clients"), headers=headers, json=body)
        assert first.status_code == second.status_code == 201
        assert first.json()["id"] == second.json()["id"]
        assert second.headers["content-type"].startswith("application/json")
        assert http.get(url("/clients"), headers=admin_headers).json()["total"] == 1

    def test_different_body_runs_again(self, http, admin_headers, url):
        headers = {**admin_headers, "Idempotency-Key": "cliente-2"}
        http.post(url("/clients"), headers=headers, json={"full_name": "Joana", "phone_e164": "11988880000"})
        http.post(url("/clients"), headers=headers, json={"full_name": "Júlia", "phone_e164": "11988881111"})
        assert http.get(url("/clients"), headers=admin_headers).json()["total"] == 2


def test_healthz(http):
    assert http.get("/healthz").json() == {"status": "ok"}
