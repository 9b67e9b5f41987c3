import pytest

from crm.core.errors import ConflictError
from crm.models.task import Task
from crm.services import tasks as svc


class TestStatuses:
    def test_new_account_has_default_columns(self, db, account):
        statuses = svc.list_statuses(db, account.id)
        assert [s.name for s in statuses] == ["A fazer", "Em andamento", "Concluída", "Cancelada"]
        assert [s.name for s in statuses if s.is_default] == ["A fazer"]
        assert [s.name for s in statuses if s.is_completed_status] == ["Concluída", "Cancelada"]

    def test_seed_is_idempotent(self, db, account):
        svc.seed_default_statuses(db, account.id)
        assert len(svc.list_statuses(db, account.id)) == 4

    def test_default_status_cannot_be_deleted(self, db, account):
        with pytest.raises(ConflictError):
            svc.delete_status(db, svc.default_status(db, account.id))

    def test_delete_moves_tasks_to_default(self, db, account):
        doing = svc.list_statuses(db, account.id)[1]
        db.add_all([Task(account_id=account.id, title=f"t{i}", status_id=doing.id) for i in range(2)])
        db.commit()
        assert svc.delete_status(db, doing) == 2
        default = svc.default_status(db, account.id)
        assert {t.status_id for t in db.query(Task).all()} == {default.id}

    def test_apply_status_tracks_completion(self, db, account):
        todo, _, done, _ = svc.list_statuses(db, account.id)
        task = Task(account_id=account.id, title="Ligar")
        svc.apply_status(task, done)
        stamp = task.completed_at
        assert stamp is not None
        svc.apply_status(task, done)
        assert task.completed_at == stamp
        svc.apply_status(task, todo)
        assert task.completed_at is None


class TestTasksApi:
    def test_create_uses_default_and_move(self, http, admin_headers, url):
        statuses = http.get(url("/tasks/statuses"), headers=admin_headers).json()
        done = next(s for s in statuses if s["name"] == "Concluída")

        task = http.post(url("/tasks"), headers=admin_headers, json={"title": "Enviar proposta"}).json()
        assert task["status_id"] == statuses[0]["id"]
        assert task["completed_at"] is None

        moved = http.post(url(f"/tasks/{task['id']}/move"), headers=admin_headers,
                          json={"status_id": done["id"]}).json()
        assert moved["completed_at"] is not None

        board = http.get(url("/tasks/board"), headers=admin_headers).json()
        assert [c["status"]["name"] for c in board] == ["A fazer", "Em andamento", "Concluída", "Cancelada"]
        assert [t["id"] for t in board[2]["tasks"]] == [task["id"]]

    def test_default_switch_and_delete(self, http, admin_headers, url):
        statuses = http.get(url("/tasks/statuses"), headers=admin_headers).json()
        todo, doing = statuses[0], statuses[1]
        task = http.post(url("/tasks"), headers=admin_headers,
                         json={"title": "Revisar contrato", "status_id": todo["id"]}).json()

        r = http.put(url(f"/tasks/statuses/{doing['id']}"), headers=admin_headers, json={"is_default": True})
        assert r.json()["is_default"] is True
        defaults = [s for s in http.get(url("/tasks/statuses"), headers=admin_headers).json() if s["is_default"]]
        assert [s["id"] for s in defaults] == [doing["id"]]

        assert http.delete(url(f"/tasks/statuses/{doing['id']}"), headers=admin_headers).status_code == 409
        r = http.delete(url(f"/tasks/statuses/{todo['id']}"), headers=admin_headers)
        assert r.json() == {"moved": 1}
        assert http.get(url(f"/tasks/{task['id']}"), headers=admin_headers).json()["status_id"] == doing["id"]

    def test_new_status_goes_last(self, http, admin_headers, url):
        created = http.post(url("/tasks/statuses"), headers=admin_headers, json={"name": "Aguardando"}).json()
        assert created["display_order"] == 5
        ids = [s["id"] for s in http.get(url("/tasks/statuses"), headers=admin_headers).json()]
        ordered = http.put(url("/tasks/statuses/reorder"), headers=admin_headers,
                           json={"ids": list(reversed(ids))}).json()
        assert ordered[0]["name"] == "Aguardando"

    def test_assignee_must_belong_to_account(self, http, admin_headers, url):
        r = http.post(url("/tasks"), headers=admin_headers, json={"title": "X", "assigned_to": 999})
        assert r.status_code == 404

    def test_members_cannot_manage_columns(self, http, member_headers, url):
        assert http.post(url("/tasks/statuses"), headers=member_headers, json={"name": "X"}).status_code == 403
