from sqlalchemy.orm import Session

from crm.crud.base import CRUDBase
from crm.models.task import Task, TaskStatus
from crm.schemas.task import TaskCreate, TaskStatusCreate, TaskStatusUpdate, TaskUpdate
from crm.services.tasks import apply_status, default_status, get_status


class CRUDTask(CRUDBase[Task, TaskCreate, TaskUpdate]):
    def create(self, db: Session, obj_in: TaskCreate, extra=None) -> Task:
        data = obj_in.model_dump()
        if extra:
            data.update(extra)
        account_id = data["account_id"]
        status_id = data.pop("status_id", None)
        status = get_status(db, account_id, status_id) if status_id else default_status(db, account_id)
        task = Task(**data, status_id=status.id)
        apply_status(task, status)
        db.add(task)
        db.commit()
        db.refresh(task)
        return task

    def update(self, db: Session, db_obj: Task, obj_in: TaskUpdate, allowed=None) -> Task:
        data = obj_in.model_dump(exclude_unset=True)
        status_id = data.pop("status_id", None)
        if status_id is not None and status_id != db_obj.status_id:
            apply_status(db_obj, get_status(db, db_obj.account_id, status_id))
            db_obj.status_id = status_id
        return super().update(db, db_obj, data)


task_crud = CRUDTask(Task, "Tarefa não encontrada.")
task_status_crud = CRUDBase[TaskStatus, TaskStatusCreate, TaskStatusUpdate](TaskStatus, "Status não encontrado.")
