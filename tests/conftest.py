"""
Fixtures compartilhadas.

O ambiente é configurado ANTES de importar ``crm``: as settings são lidas
na importação (banco sqlite temporário, envio de lembretes sem intervalo).
"""
import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="crm-tests-")
os.environ["DATA_DIR"] = _TMP
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["REMINDER_DELAY_MIN_SECONDS"] = "0"
os.environ["REMINDER_DELAY_MAX_SECONDS"] = "0"
os.environ["CRON_SECRET"] = "cron-de-teste"
os.environ["RESEND_API_KEY"] = ""
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "0"
os.environ["SYNC_MAX_RETRIES"] = "2"
os.environ["SYNC_MAX_WORKERS"] = "1"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from crm.core.errors import PermanentNotificationError  # noqa: E402
from crm.crud.account import account_crud  # noqa: E402
from crm.crud.user import user_crud  # noqa: E402
from crm.db.init_db import seed_roles  # noqa: E402
from crm.db.session import SessionLocal, engine  # noqa: E402
from crm.main import api  # noqa: E402
from crm.models import Base  # noqa: E402
from crm.schemas.account import AccountCreate  # noqa: E402
from crm.schemas.user import UserCreate  # noqa: E402
from crm.services.notifiers.registry import NotifierFactory, get_notifier_factory  # noqa: E402

ADMIN_EMAIL = "admin@acme.com.br"
ADMIN_PASSWORD = "senha-forte-123"
SLUG = "acme"


# ----------------------------------------------------------------------
# Notifiers falsos
# ----------------------------------------------------------------------
class FakeWhatsApp:
    def __init__(self):
        self.sent = []
        self.fail_for = set()
        self.groups = []

    def send(self, to, text):
        if to in self.fail_for:
            raise PermanentNotificationError("Número sem WhatsApp")
        self.sent.append((to, text))

    def fetch_groups(self):
        return list(self.groups)


class FakeEmail:
    def __init__(self):
        self.sent = []
        self.fail_for = set()

    def send(self, to, subject, html):
        if to in self.fail_for:
            raise PermanentNotificationError("E-mail inválido")
        self.sent.append((to, subject, html))


class FakeNotifierFactory(NotifierFactory):
    def __init__(self):
        self.wa = FakeWhatsApp()
        self.mail = FakeEmail()

    def whatsapp(self, db, account_id):
        return self.wa

    def email(self):
        return self.mail


# ----------------------------------------------------------------------
# Banco
# ----------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        seed_roles(db)
        db.commit()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def account(db):
    return account_crud.create_with_admin(db, AccountCreate(
        name="Acme Cursos", slug=SLUG, admin_name="Ana Admin",
        admin_email=ADMIN_EMAIL, admin_password=ADMIN_PASSWORD,
    ))


@pytest.fixture
def make_user(db, account):
    def _make(email, role="member", password="senha-membro-1"):
        return user_crud.create(db, UserCreate(name=email.split("@")[0], email=email, password=password,
                                               roles=[role]), extra={"account_id": account.id})
    return _make


# ----------------------------------------------------------------------
# HTTP
# ----------------------------------------------------------------------
@pytest.fixture
def notifiers():
    return FakeNotifierFactory()


@pytest.fixture
def http(notifiers):
    api.dependency_overrides[get_notifier_factory] = lambda: notifiers
    with TestClient(api) as c:
        yield c
    api.dependency_overrides.clear()


def login(http, email, password, slug=SLUG):
    r = http.post(f"/api/v1/{slug}/auth/login", json={"username": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()


@pytest.fixture
def admin_headers(http, account):
    tokens = login(http, ADMIN_EMAIL, ADMIN_PASSWORD)
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture
def member_headers(http, make_user):
    make_user("membro@acme.com.br", "member")
    tokens = login(http, "membro@acme.com.br", "senha-membro-1")
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture
def url():
    def _url(path):
        return f"/api/v1/{SLUG}{path}"
    return _url


@pytest.fixture
def login_as(http):
    def _login(email, password):
        return login(http, email, password)
    return _login
