from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.core.db import Base

PAYMENT_TYPES = (
    "membership_due",
    "tithe",
    "offering",
    "donation",
    "pledge_payment",
    "vow",
    "building_fund",
    "event",
    "religious_item_sales",
    "tigray_hunger_fundraiser",
    "other",
)
PAYMENT_METHODS = ("cash", "check", "zelle", "credit_card", "debit_card", "ach", "other")
TRANSACTION_STATUSES = ("pending", "succeeded", "failed", "canceled")

PaymentType = Enum(*PAYMENT_TYPES, name="transaction_payment_type")
PaymentMethod = Enum(*PAYMENT_METHODS, name="transaction_payment_method")
TransactionStatus = Enum(*TRANSACTION_STATUSES, name="transaction_status")


class FinancialTransaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="SET NULL"), nullable=True, index=True)
    collected_by = Column(Integer, ForeignKey("members.id", ondelete="RESTRICT"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False, default=date.today, index=True)
    payment_type = Column(PaymentType, nullable=False, index=True)
    payment_method = Column(PaymentMethod, nullable=False)
    status = Column(TransactionStatus, nullable=False, default="succeeded")
    external_id = Column(String(255), nullable=True, unique=True)
    note = Column(String(500), nullable=True)
    donor_name = Column(String(255), nullable=True)
    donor_type = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    member = relationship("Member", foreign_keys=[member_id])
    collector = relationship("Member", foreign_keys=[collected_by])
