from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from app.core.db import Base

BankTransactionStatus = Enum("PENDING", "MATCHED", "IGNORED", name="bank_transaction_status")


class BankTransaction(Base):
    __tablename__ = "bank_transactions"

    id = Column(Integer, primary_key=True)
    transaction_hash = Column(String(64), nullable=False, unique=True, index=True)
    date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    balance = Column(Numeric(12, 2), nullable=True)
    description = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, default="OTHER")
    status = Column(BankTransactionStatus, nullable=False, default="PENDING", index=True)
    payer_name = Column(String(255), nullable=True)
    external_ref_id = Column(String(100), nullable=True)
    check_number = Column(String(50), nullable=True)
    raw_data = Column(JSON, nullable=True)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    member = relationship("Member")
