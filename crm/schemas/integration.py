# crm/schemas/integration.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

IntegrationType = Literal["zoom", "evolution", "whatsapp", "pipedrive", "omie", "openai"]


class IntegrationUpsert(BaseModel):
    status: Optional[Literal["connected", "disconnected", "error"]] = None
    config: Dict[str, Any] = Field(default_factory=dict)


class IntegrationOut(BaseModel):
    id: int
    type: str
    status: str
    config: Dict[str, Any] = {}   # segredos mascarados
    last_sync_at: Optional[datetime] = None
    last_error: Optional[str] = None


class SyncJobOut(BaseModel):
    id: int
    integration_type: str
    status: str
    total: int
    success_count: int
    fail_count: int
    errors: List[Dict[str, Any]] = []
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ----------------------------------------------------------------------
# Grupos de WhatsApp
# ----------------------------------------------------------------------
class GroupOut(BaseModel):
    id: int
    group_jid: str
    name: str
    description: Optional[str] = None
    participant_count: int
    ai_analysis_enabled: bool
    sentiment: Optional[str] = None
    last_message_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class GroupUpdate(BaseModel):
    ai_analysis_enabled: Optional[bool] = None
    description: Optional[str] = None


class GroupMessageIn(BaseModel):
    group_ids: List[int] = Field(min_length=1)
    text: str = Field(min_length=1)


class GroupSendResult(BaseModel):
    group_id: int
    name: str
    success: bool
    error: Optional[str] = None
