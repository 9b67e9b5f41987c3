from typing import Optional, Dict, Any, List
from datetime import datetime, date
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, JSON, DateTime, Date, Text, ForeignKey, func
from crm.db.base import Base

CLIENT_STATUSES = ("active", "inactive", "churn", "churn_risk", "lead")
FOLLOWUP_TYPES = ("note", "call", "meeting", "whatsapp", "email")


class Client(Base):
    __tablename__ = "clients"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), index=True)

    full_name: Mapped[str] = mapped_column(String(200))
    phone_e164: Mapped[str] = mapped_column(String(20), index=True)
    additional_phones: Mapped[List[str]] = mapped_column(JSON, default=list)
    emails: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)

    cpf: Mapped[Optional[str]] = mapped_column(String(14), nullable=True)
    cnpj: Mapped[Optional[str]] = mapped_column(String(18), nullable=True)
    company_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # endereço residencial
    zip_code: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)
    street: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    street_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    complement: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    neighborhood: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    # endereço comercial (mesmas chaves do residencial)
    business_address: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    status: Mapped[str] = mapped_column(String(20), default="active")
    tags: Mapped[List[str]] = mapped_column(JSON, default=list)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    responsible_user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # origem quando importado (pipedrive / omie)
    external_source: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    external_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    contracts = relationship("Contract", back_populates="client", cascade="all, delete-orphan")
    followups = relationship("ClientFollowup", back_populates="client", cascade="all, delete-orphan")
    field_values = relationship("ClientFieldValue", back_populates="client", cascade="all, delete-orphan")


class ClientFollowup(Base):
    __tablename__ = "client_followups"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), index=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    parent_id: Mapped[Optional[int]] = mapped_column(ForeignKey("client_followups.id", ondelete="CASCADE"), nullable=True)

    type: Mapped[str] = mapped_column(String(20), default="note")
    title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    client = relationship("Client", back_populates="followups")
