# crm/schemas/task.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Priority = Literal["low", "medium", "high", "urgent"]


class TaskStatusCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    color: str = "#6b7280"
    icon: Optional[str] = "circle"
    is_completed_status: bool = False


class TaskStatusUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    color: Optional[str] = None
    icon: Optional[str] = None
    is_completed_status: Optional[bool] = None
    is_default: Optional[bool] = None


class TaskStatusOut(BaseModel):
    id: int
    name: str
    color: str
    icon: Optional[str] = None
    display_order: int
    is_default: bool
    is_completed_status: bool

    model_config = {"from_attributes": True}


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    status_id: Optional[int] = None   # ausente -> status padrão da conta
    priority: Priority = "medium"
    due_date: Optional[date] = None
    client_id: Optional[int] = None
    assigned_to: Optional[int] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    status_id: Optional[int] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None
    client_id: Optional[int] = None
    assigned_to: Optional[int] = None


class TaskMove(BaseModel):
    status_id: int


class TaskOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    status_id: int
    priority: str
    due_date: Optional[date] = None
    client_id: Optional[int] = None
    assigned_to: Optional[int] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BoardColumn(BaseModel):
    status: TaskStatusOut
    tasks: List[TaskOut]
