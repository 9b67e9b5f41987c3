# crm/services/tasks.py
"""Colunas do kanban de tarefas e movimentação entre elas."""
from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from crm.core.clock import utcnow
from crm.core.errors import ConflictError, NotFoundError, ValidationFailed
from crm.models.task import Task, TaskStatus

log = structlog.get_logger(__name__)

# (nome, cor, ícone, padrão, conclusão)
DEFAULT_STATUSES = (
    ("A fazer", "#6b7280", "circle", True, False),
    ("Em andamento", "#3b82f6", "clock", False, False),
    ("Concluída", "#22c55e", "check-circle", False, True),
    ("Cancelada", "#ef4444", "x-circle", False, True),
)


def list_statuses(db: Session, account_id: int) -> list[TaskStatus]:
    stmt = select(TaskStatus).where(TaskStatus.account_id == account_id).order_by(TaskStatus.display_order, TaskStatus.id)
    return list(db.scalars(stmt).all())


def seed_default_statuses(db: Session, account_id: int) -> list[TaskStatus]:
    existing = list_statuses(db, account_id)
    if existing:
        return existing
    for order, (name, color, icon, is_default, done) in enumerate(DEFAULT_STATUSES, start=1):
        db.add(TaskStatus(account_id=account_id, name=name, color=color, icon=icon, display_order=order,
                          is_default=is_default, is_completed_status=done))
    db.flush()
    return list_statuses(db, account_id)


def default_status(db: Session, account_id: int) -> TaskStatus:
    statuses = list_statuses(db, account_id) or seed_default_statuses(db, account_id)
    return next((s for s in statuses if s.is_default), statuses[0])


def get_status(db: Session, account_id: int, status_id: int) -> TaskStatus:
    status = db.get(TaskStatus, status_id)
    if status is None or status.account_id != account_id:
        raise NotFoundError("Status não encontrado.")
    return status


def set_default(db: Session, status: TaskStatus) -> TaskStatus:
    # só um padrão por conta
    db.execute(
        update(TaskStatus)
        .where(TaskStatus.account_id == status.account_id, TaskStatus.id != status.id)
        .values(is_default=False)
    )
    status.is_default = True
    db.commit()
    db.refresh(status)
    return status


def reorder_statuses(db: Session, account_id: int, ordered_ids: list[int]) -> list[TaskStatus]:
    statuses = {s.id: s for s in list_statuses(db, account_id)}
    unknown = [i for i in ordered_ids if i not in statuses]
    if unknown:
        raise ValidationFailed("Status desconhecidos na ordenação.", details={"ids": unknown})
    for position, status_id in enumerate(ordered_ids, start=1):
        statuses[status_id].display_order = position
    db.commit()
    return list_statuses(db, account_id)


def delete_status(db: Session, status: TaskStatus) -> int:
    """Remove a coluna; as tarefas dela vão para o status padrão da conta."""
    if status.is_default:
        raise ConflictError("O status padrão não pode ser removido.")
    target = default_status(db, status.account_id)
    moved = db.execute(
        update(Task).where(Task.status_id == status.id).values(status_id=target.id)
    ).rowcount or 0
    db.delete(status)
    db.commit()
    log.info("task_status.deleted", status_id=status.id, moved=moved, target=target.id)
    return moved


def apply_status(task: Task, status: TaskStatus) -> None:
    task.status_id = status.id
    task.status = status
    if status.is_completed_status:
        task.completed_at = task.completed_at or utcnow()
    else:
        task.completed_at = None


def move(db: Session, task: Task, status_id: int) -> Task:
    status = get_status(db, task.account_id, status_id)
    apply_status(task, status)
    db.commit()
    db.refresh(task)
    return task


def board(db: Session, account_id: int, assigned_to: Optional[int] = None,
          client_id: Optional[int] = None) -> list[dict]:
    statuses = list_statuses(db, account_id)
    stmt = select(Task).where(Task.account_id == account_id)
    if assigned_to is not None:
        stmt = stmt.where(Task.assigned_to == assigned_to)
    if client_id is not None:
        stmt = stmt.where(Task.client_id == client_id)
    tasks = db.scalars(stmt.order_by(Task.due_date.is_(None), Task.due_date, Task.id)).all()
    by_status: dict[int, list[Task]] = {s.id: [] for s in statuses}
    for t in tasks:
        by_status.setdefault(t.status_id, []).append(t)
    return [{"status": s, "tasks": by_status[s.id]} for s in statuses]
