# crm/schemas/campaign.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from crm.services.campaign_wizard import WizardState

WizardAction = Literal[
    "next", "prev", "go_to", "select_event", "toggle_participant", "select_all",
    "set_type", "update", "send", "reset",
]


class WizardIn(BaseModel):
    state: WizardState = Field(default_factory=WizardState)
    action: WizardAction
    # argumentos da ação
    step: Optional[str] = None
    event_id: Optional[int] = None
    participant_id: Optional[int] = None
    campaign_type: Optional[Literal["notice", "rsvp", "checkin", "feedback"]] = None
    fields: Dict[str, Any] = Field(default_factory=dict)


class Toast(BaseModel):
    kind: Literal["success", "error"]
    message: str


class WizardOut(BaseModel):
    state: WizardState
    can_proceed: bool
    campaign_id: Optional[int] = None
    toast: Optional[Toast] = None


class CampaignCreate(BaseModel):
    """Envio direto (sem assistente)."""
    event_id: int
    participant_ids: List[int] = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    campaign_type: Literal["notice", "rsvp", "checkin", "feedback"] = "notice"
    message_template: str = Field(min_length=1)
    email_subject: Optional[str] = None
    send_whatsapp: bool = True
    send_email: bool = False
    scheduled_at: Optional[datetime] = None


class RetryIn(BaseModel):
    retry_whatsapp: bool = True
    retry_email: bool = True


class RespondIn(BaseModel):
    response_data: Dict[str, Any] = Field(default_factory=dict)


class RecipientOut(BaseModel):
    id: int
    participant_id: Optional[int] = None
    client_id: Optional[int] = None
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    send_order: int
    whatsapp_status: str
    whatsapp_sent_at: Optional[datetime] = None
    whatsapp_error: Optional[str] = None
    email_status: str
    email_sent_at: Optional[datetime] = None
    email_error: Optional[str] = None
    responded_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CampaignOut(BaseModel):
    id: int
    event_id: int
    name: str
    campaign_type: str
    message_template: str
    email_subject: Optional[str] = None
    send_whatsapp: bool
    send_email: bool
    status: str
    scheduled_at: Optional[datetime] = None
    total_recipients: int
    sent_count: int
    failed_count: int
    responded_count: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CampaignDetail(CampaignOut):
    recipients: List[RecipientOut] = []
