# crm/schemas/onboarding.py
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel


class OnboardingDataIn(BaseModel):
    accountName: Optional[str] = None
    welcomeMessage: Optional[str] = None
    enableAI: Optional[bool] = None
    clientName: Optional[str] = None
    clientPhone: Optional[str] = None
    clientEmail: Optional[str] = None
    productName: Optional[str] = None
    productDescription: Optional[str] = None
    productPrice: Optional[str] = None
    eventTitle: Optional[str] = None
    eventType: Optional[str] = None
    eventModality: Optional[Literal["online", "presencial"]] = None
    eventDate: Optional[str] = None   # AAAA-MM-DD
    eventTime: Optional[str] = None   # HH:MM
    eventMeetingUrl: Optional[str] = None
    eventAddress: Optional[str] = None
    inviteEmails: Optional[str] = None  # separados por vírgula


class OnboardingState(BaseModel):
    step: int
    total_steps: int
    title: Optional[str] = None
    progress: int
    can_skip: bool
    completed: bool
    skipped_steps: List[int]
    completed_steps: List[int]
    data: Dict[str, Any]
    achievements: List[Dict[str, Any]]
    unlocked_count: int
    total_achievements: int
    pending_achievement: Optional[str] = None
