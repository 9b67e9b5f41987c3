import threading

import pytest
from sqlalchemy import select

from crm.core.errors import IntegrationError, TemporaryIntegrationError
from crm.db.session import SessionLocal
from crm.models.client import Client
from crm.models.integration import Integration, SyncJob
from crm.services import sync
from crm.services.integrations import ExternalClient


class FakeSource:
    name = "pipedrive"

    def __init__(self, items=None, error=None):
        self.items = items or []
        self.error = error

    def iter_clients(self):
        if self.error:
            raise self.error
        return iter(self.items)


def _items():
    return [
        ExternalClient("1", "Lia Souza", phone="(11) 91234-0001", email="lia@x.com", document="52998224725"),
        ExternalClient("2", "Rubens", phone="11912340002", company_name="Rubens ME", document="11222333000181"),
        ExternalClient("3", "Sem Telefone"),
    ]


def _run(account, source):
    return sync.run_sync(account.id, "pipedrive", source, SessionLocal, max_workers=1)


class TestRunSync:
    def test_imports_and_records_failures(self, db, account):
        job_id = _run(account, FakeSource(_items()))
        job = db.get(SyncJob, job_id)
        assert job.status == "completed"
        assert (job.total, job.success_count, job.fail_count) == (3, 2, 1)
        assert job.errors == [{"external_id": "3", "error": "Telefone ausente"}]
        assert sorted(job.processed_ids) == ["1", "2", "3"]

        lia = db.scalar(select(Client).where(Client.external_id == "1"))
        assert lia.phone_e164 == "+5511912340001"
        assert lia.cpf == "529.982.247-25"
        assert lia.emails == [{"email": "lia@x.com", "type": "main"}]
        rubens = db.scalar(select(Client).where(Client.external_id == "2"))
        assert (rubens.cnpj, rubens.company_name) == ("11.222.333/0001-81", "Rubens ME")

    def test_second_run_updates_instead_of_duplicating(self, db, account):
        _run(account, FakeSource(_items()[:1]))
        _run(account, FakeSource([ExternalClient("1", "Lia S. Souza", phone="11912340001")]))
        rows = db.scalars(select(Client).where(Client.account_id == account.id)).all()
        assert [c.full_name for c in rows] == ["Lia S. Souza"]

    def test_links_existing_client_by_phone(self, db, account):
        db.add(Client(account_id=account.id, full_name="Lia", phone_e164="+5511912340001"))
        db.commit()
        _run(account, FakeSource(_items()[:1]))
        rows = db.scalars(select(Client).where(Client.account_id == account.id)).all()
        assert len(rows) == 1
        assert (rows[0].external_source, rows[0].external_id) == ("pipedrive", "1")

    def test_resumes_from_checkpoint(self, db, account):
        db.add(SyncJob(account_id=account.id, integration_type="pipedrive", status="running",
                       processed_ids=["1"], success_count=1, errors=[]))
        db.commit()
        job_id = _run(account, FakeSource(_items()[:2]))
        job = db.get(SyncJob, job_id)
        assert (job.total, job.success_count) == (2, 2)
        assert db.scalar(select(Client).where(Client.external_id == "1")) is None

    def test_fetch_error_marks_job_and_integration(self, db, account):
        db.add(Integration(account_id=account.id, type="pipedrive", status="connected", config={"api_token": "x"}))
        db.commit()
        job_id = _run(account, FakeSource(error=IntegrationError("pipedrive: erro 401")))
        db.expire_all()
        job = db.get(SyncJob, job_id)
        assert job.status == "failed"
        assert job.errors[-1]["error"] == "pipedrive: erro 401"
        integration = db.scalar(select(Integration).where(Integration.account_id == account.id))
        assert (integration.status, integration.last_error) == ("error", "pipedrive: erro 401")

    def test_transient_item_errors_are_retried(self, db, account, monkeypatch):
        calls = []
        real = sync.upsert_client

        def flaky(db_, account_id, source, item):
            calls.append(item.external_id)
            if len(calls) == 1:
                raise TemporaryIntegrationError("banco ocupado")
            return real(db_, account_id, source, item)

        monkeypatch.setattr(sync, "upsert_client", flaky)
        job_id = _run(account, FakeSource(_items()[:1]))
        assert calls == ["1", "1"]
        assert db.get(SyncJob, job_id).success_count == 1


    def test_same_phone_stays_on_one_worker(self, db, account, monkeypatch):
        threads = {}
        real = sync.upsert_client

        def tracked(db_, account_id, source, item):
            threads[item.external_id] = threading.get_ident()
            return real(db_, account_id, source, item)

        monkeypatch.setattr(sync, "upsert_client", tracked)
        items = [ExternalClient("1", "Lia Souza", phone="11912340001"),
                 ExternalClient("9", "Lia S.", phone="(11) 91234-0001")]
        job_id = sync.run_sync(account.id, "pipedrive", FakeSource(items), SessionLocal, max_workers=2)

        assert threads["1"] == threads["9"]
        assert db.get(SyncJob, job_id).success_count == 2
        rows = db.scalars(select(Client).where(Client.account_id == account.id)).all()
        assert [c.phone_e164 for c in rows] == ["+5511912340001"]

    def test_batches_group_by_normalized_phone(self):
        batches = sync._batches([*_items(), ExternalClient("4", "Lia", phone="+55 11 91234-0001")])
        assert [[i.external_id for i in b] for b in batches] == [["1", "4"], ["2"], ["3"]]

    def test_unexpected_item_error_fails_only_that_item(self, db, account, monkeypatch):
        real = sync.upsert_client

        def broken(db_, account_id, source, item):
            if item.external_id == "2":
                raise ValueError("campo com formato inesperado")
            return real(db_, account_id, source, item)

        monkeypatch.setattr(sync, "upsert_client", broken)
        job = db.get(SyncJob, _run(account, FakeSource(_items()[:2])))
        assert job.status == "completed"
        assert (job.success_count, job.fail_count) == (1, 1)
        assert job.errors == [{"external_id": "2", "error": "campo com formato inesperado"}]

    def test_unexpected_fetch_error_fails_job(self, db, account):
        job = db.get(SyncJob, _run(account, FakeSource(error=ValueError("Expecting value"))))
        assert job.status == "failed"
        assert job.finished_at is not None
        assert job.errors[-1]["error"] == "Expecting value"


class TestSyncApi:
    def test_requires_configured_source(self, http, admin_headers, url):
        r = http.post(url("/integrations/pipedrive/sync"), headers=admin_headers)
        assert r.status_code == 502
        assert r.json()["code"] == "NOT_CONFIGURED"

    def test_only_import_sources(self, http, admin_headers, url):
        assert http.post(url("/integrations/zoom/sync"), headers=admin_headers).status_code == 422

    def test_starts_background_job(self, http, admin_headers, url, monkeypatch):
        from crm.services import integrations

        monkeypatch.setattr(integrations, "source_for", lambda integration: FakeSource(_items()))
        r = http.post(url("/integrations/pipedrive/sync"), headers=admin_headers)
        assert r.status_code == 202, r.text
        job = http.get(url(f"/integrations/sync-jobs/{r.json()['id']}"), headers=admin_headers).json()
        assert job["status"] == "completed"
        assert (job["success_count"], job["fail_count"]) == (2, 1)
        clients = http.get(url("/clients"), headers=admin_headers).json()
        assert clients["total"] == 2


@pytest.mark.parametrize("raw,expected", [
    ("529.982.247-25", {"cpf": "529.982.247-25"}),
    ("11222333000181", {"cnpj": "11.222.333/0001-81"}),
    ("123", {}),
    (None, {}),
])
def test_documents(raw, expected):
    assert sync._documents(raw) == expected
