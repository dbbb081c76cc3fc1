from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String

from app.core.db import Base

LedgerEntryType = Enum("income", "expense", name="ledger_entry_type")
LedgerSourceSystem = Enum("manual", "bank_import", "email_import", name="ledger_source_system")


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True, index=True)
    entry_date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    type = Column(LedgerEntryType, nullable=False)
    gl_code = Column(String(20), nullable=False, index=True)
    memo = Column(String(500), nullable=True)
    source_system = Column(LedgerSourceSystem, nullable=False, default="manual")
    payment_method = Column(String(50), nullable=True)
    external_id = Column(String(255), nullable=True)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="SET NULL"), nullable=True)
    collector_id = Column(Integer, ForeignKey("members.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
