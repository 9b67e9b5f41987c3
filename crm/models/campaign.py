from typing import Optional, Any, Dict
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Text, Integer, Boolean, DateTime, JSON, ForeignKey, func
from crm.db.base import Base

CAMPAIGN_TYPES = ("notice", "rsvp", "checkin", "feedback")
CAMPAIGN_STATUSES = ("draft", "scheduled", "sending", "completed", "cancelled")
DELIVERY_STATUSES = ("pending", "queued", "sending", "sent", "failed", "responded")


class ReminderCampaign(Base):
    __tablename__ = "reminder_campaigns"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), index=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), index=True)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    name: Mapped[str] = mapped_column(String(200))
    campaign_type: Mapped[str] = mapped_column(String(20), default="notice")
    message_template: Mapped[str] = mapped_column(Text)
    email_subject: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    send_whatsapp: Mapped[bool] = mapped_column(Boolean, default=True)
    send_email: Mapped[bool] = mapped_column(Boolean, default=False)

    status: Mapped[str] = mapped_column(String(20), default="draft", index=True)
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delay_min_seconds: Mapped[int] = mapped_column(Integer, default=3)
    delay_max_seconds: Mapped[int] = mapped_column(Integer, default=10)

    total_recipients: Mapped[int] = mapped_column(Integer, default=0)
    sent_count: Mapped[int] = mapped_column(Integer, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, default=0)
    responded_count: Mapped[int] = mapped_column(Integer, default=0)

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    recipients = relationship(
        "ReminderRecipient", back_populates="campaign",
        cascade="all, delete-orphan", order_by="ReminderRecipient.send_order",
    )


class ReminderRecipient(Base):
    __tablename__ = "reminder_recipients"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("reminder_campaigns.id", ondelete="CASCADE"), index=True)
    participant_id: Mapped[Optional[int]] = mapped_column(ForeignKey("event_participants.id", ondelete="SET NULL"), nullable=True)
    client_id: Mapped[Optional[int]] = mapped_column(ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)

    name: Mapped[str] = mapped_column(String(200))
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    send_order: Mapped[int] = mapped_column(Integer, default=0)

    whatsapp_status: Mapped[str] = mapped_column(String(20), default="pending")
    whatsapp_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    whatsapp_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email_status: Mapped[str] = mapped_column(String(20), default="pending")
    email_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    email_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    response_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    campaign = relationship("ReminderCampaign", back_populates="recipients")
