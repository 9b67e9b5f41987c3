from typing import Optional
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Text, Numeric, Date, DateTime, ForeignKey, func
from crm.db.base import Base

CONTRACT_TYPES = ("compra", "renovacao", "confissao_divida", "termo_congelamento", "distrato")
CONTRACT_STATUSES = ("active", "paused", "ended", "cancelled")


class Contract(Base):
    __tablename__ = "client_contracts"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), index=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), index=True)
    product_id: Mapped[Optional[int]] = mapped_column(ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    # cadeia de renovação: ponteiro para o contrato renovado
    parent_contract_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("client_contracts.id", ondelete="SET NULL"), nullable=True, index=True
    )

    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    value: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="BRL")
    contract_type: Mapped[str] = mapped_column(String(30), default="compra")
    payment_option: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="active")
    status_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status_changed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    client = relationship("Client", back_populates="contracts")
    product = relationship("Product")
