from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint

from app.core.db import Base

MONTH_FIELDS = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)


class YearlyPaymentSnapshot(Base):
    """Legacy per-year dues grid, keyed by phone number and year."""

    __tablename__ = "member_payments"
    __table_args__ = (UniqueConstraint("phone1", "year", name="uq_member_payments_phone_year"),)

    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="SET NULL"), nullable=True, index=True)
    member_name = Column(String(255), nullable=True)
    phone1 = Column(String(25), nullable=False)
    year = Column(Integer, nullable=False)
    monthly_payment = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount_due = Column(Numeric(12, 2), nullable=False, default=0)
    january = Column(Numeric(12, 2), nullable=False, default=0)
    february = Column(Numeric(12, 2), nullable=False, default=0)
    march = Column(Numeric(12, 2), nullable=False, default=0)
    april = Column(Numeric(12, 2), nullable=False, default=0)
    may = Column(Numeric(12, 2), nullable=False, default=0)
    june = Column(Numeric(12, 2), nullable=False, default=0)
    july = Column(Numeric(12, 2), nullable=False, default=0)
    august = Column(Numeric(12, 2), nullable=False, default=0)
    september = Column(Numeric(12, 2), nullable=False, default=0)
    october = Column(Numeric(12, 2), nullable=False, default=0)
    november = Column(Numeric(12, 2), nullable=False, default=0)
    december = Column(Numeric(12, 2), nullable=False, default=0)
    total_collected = Column(Numeric(12, 2), nullable=False, default=0)
    balance_due = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def monthly_amounts(self) -> list:
        return [getattr(self, field) for field in MONTH_FIELDS]
