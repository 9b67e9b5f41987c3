from typing import Optional, Any, Dict, List
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, JSON, Boolean, Integer, Numeric, Date, Text, DateTime, ForeignKey, UniqueConstraint, func
from crm.db.base import Base

FIELD_TYPES = ("select", "multi_select", "boolean", "number", "currency", "text", "date", "user")
OPTION_COLORS = ("green", "red", "yellow", "blue", "purple", "pink", "orange", "gray")


class CustomField(Base):
    __tablename__ = "custom_fields"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    field_type: Mapped[str] = mapped_column(String(20))
    # [{"value": "opt_1", "label": "Sim", "color": "green"}, ...]
    options: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    show_in_clients: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ClientFieldValue(Base):
    """Um valor por (cliente, campo); só a coluna do tipo do campo fica preenchida."""
    __tablename__ = "client_field_values"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), index=True)
    field_id: Mapped[int] = mapped_column(ForeignKey("custom_fields.id", ondelete="CASCADE"), index=True)

    value_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    value_number: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    value_boolean: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    value_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    value_json: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="field_values")
    field = relationship("CustomField")

    __table_args__ = (UniqueConstraint("client_id", "field_id", name="uq_client_field_values_client_field"),)
