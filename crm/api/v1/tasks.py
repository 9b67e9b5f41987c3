# crm/api/v1/tasks.py
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select

from crm.api.deps import get_context
from crm.core.context import RequestContext
from crm.core.rbac import ROLE_MANAGER, require_min_role
from crm.crud.client import client_crud
from crm.crud.task import task_crud, task_status_crud
from crm.crud.user import user_crud
from crm.models.task import Task, TaskStatus
from crm.schemas.custom_field import ReorderIn
from crm.schemas.task import (
    BoardColumn, TaskCreate, TaskMove, TaskOut, TaskStatusCreate, TaskStatusOut, TaskStatusUpdate, TaskUpdate,
)
from crm.services import tasks as svc

router = APIRouter()


def _check_refs(ctx: RequestContext, client_id: Optional[int], assigned_to: Optional[int]) -> None:
    if client_id is not None:
        client_crud.get_for_account(ctx.db, ctx.account_id, client_id)
    if assigned_to is not None:
        user_crud.get_for_account(ctx.db, ctx.account_id, assigned_to)


# ---------------------- colunas ----------------------
@router.get("/statuses", response_model=List[TaskStatusOut])
def list_statuses(ctx: RequestContext = Depends(get_context)):
    return svc.list_statuses(ctx.db, ctx.account_id) or svc.seed_default_statuses(ctx.db, ctx.account_id)


@router.post("/statuses", response_model=TaskStatusOut, status_code=status.HTTP_201_CREATED)
def create_status(body: TaskStatusCreate, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    last = ctx.db.scalar(select(func.max(TaskStatus.display_order)).where(TaskStatus.account_id == ctx.account_id))
    return task_status_crud.create(ctx.db, body, extra={"account_id": ctx.account_id, "display_order": (last or 0) + 1})


@router.put("/statuses/reorder", response_model=List[TaskStatusOut])
def reorder_statuses(body: ReorderIn, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    return svc.reorder_statuses(ctx.db, ctx.account_id, body.ids)


@router.put("/statuses/{status_id}", response_model=TaskStatusOut)
def update_status(status_id: int, body: TaskStatusUpdate, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    row = svc.get_status(ctx.db, ctx.account_id, status_id)
    data = body.model_dump(exclude_unset=True)
    make_default = data.pop("is_default", None)
    row = task_status_crud.update(ctx.db, row, data)
    if make_default:
        row = svc.set_default(ctx.db, row)
    return row


@router.delete("/statuses/{status_id}")
def delete_status(status_id: int, ctx: RequestContext = Depends(require_min_role(ROLE_MANAGER))):
    row = svc.get_status(ctx.db, ctx.account_id, status_id)
    return {"moved": svc.delete_status(ctx.db, row)}


# ---------------------- quadro ----------------------
@router.get("/board", response_model=List[BoardColumn])
def board(assigned_to: Optional[int] = None, client_id: Optional[int] = None,
          ctx: RequestContext = Depends(get_context)):
    return svc.board(ctx.db, ctx.account_id, assigned_to=assigned_to, client_id=client_id)


# ---------------------- tarefas ----------------------
@router.get("", response_model=List[TaskOut])
def list_tasks(status_id: Optional[int] = None, assigned_to: Optional[int] = None, client_id: Optional[int] = None,
               ctx: RequestContext = Depends(get_context)):
    stmt = select(Task).where(Task.account_id == ctx.account_id)
    if status_id is not None:
        stmt = stmt.where(Task.status_id == status_id)
    if assigned_to is not None:
        stmt = stmt.where(Task.assigned_to == assigned_to)
    if client_id is not None:
        stmt = stmt.where(Task.client_id == client_id)
    return ctx.db.scalars(stmt.order_by(Task.id.desc())).all()


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(body: TaskCreate, ctx: RequestContext = Depends(get_context)):
    _check_refs(ctx, body.client_id, body.assigned_to)
    return task_crud.create(ctx.db, body, extra={"account_id": ctx.account_id})


@router.get("/{task_id}", response_model=TaskOut)
def get_task(task_id: int, ctx: RequestContext = Depends(get_context)):
    return task_crud.get_for_account(ctx.db, ctx.account_id, task_id)


@router.put("/{task_id}", response_model=TaskOut)
def update_task(task_id: int, body: TaskUpdate, ctx: RequestContext = Depends(get_context)):
    task = task_crud.get_for_account(ctx.db, ctx.account_id, task_id)
    _check_refs(ctx, body.client_id, body.assigned_to)
    return task_crud.update(ctx.db, task, body)


@router.post("/{task_id}/move", response_model=TaskOut)
def move_task(task_id: int, body: TaskMove, ctx: RequestContext = Depends(get_context)):
    task = task_crud.get_for_account(ctx.db, ctx.account_id, task_id)
    return svc.move(ctx.db, task, body.status_id)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: int, ctx: RequestContext = Depends(get_context)):
    task = task_crud.get_for_account(ctx.db, ctx.account_id, task_id)
    task_crud.remove(ctx.db, task)
