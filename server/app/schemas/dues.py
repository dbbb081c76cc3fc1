from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from app.schemas.transaction import TransactionOut

MonthStatus = Literal["paid", "due", "upcoming", "pre-membership"]


class DuesMonthOut(BaseModel):
    month: int
    name: str
    status: MonthStatus
    due: Decimal
    paid: Decimal
    is_future: bool = False


class DuesMemberOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: Optional[str]
    phone: Optional[str]
    yearly_pledge: Decimal
    date_joined_parish: Optional[date]


class HouseholdSummaryOut(BaseModel):
    is_household_view: bool
    head_of_household: DuesMemberOut
    member_names: List[str]
    total_members: int


class DuesPaymentsOut(BaseModel):
    year: int
    monthly_due: Decimal
    join_month: Optional[int]
    months_required: int
    total_amount_due: Decimal
    dues_collected: Decimal
    outstanding_dues: Decimal
    dues_progress: Decimal
    future_dues: Decimal
    months: List[DuesMonthOut]


class OtherContributionsOut(BaseModel):
    donation: Decimal
    pledge: Decimal
    tithe: Decimal
    offering: Decimal
    other: Decimal


class DuesDetailsOut(BaseModel):
    member: DuesMemberOut
    household: HouseholdSummaryOut
    payments: DuesPaymentsOut
    other_contributions: OtherContributionsOut
    grand_total: Decimal
    transactions: List[TransactionOut]


class PledgeUpdate(BaseModel):
    yearly_pledge: Decimal = Field(..., ge=0)


class SnapshotOut(BaseModel):
    id: int
    member_id: Optional[int]
    member_name: Optional[str]
    phone1: str
    year: int
    monthly_payment: Decimal
    total_amount_due: Decimal
    january: Decimal
    february: Decimal
    march: Decimal
    april: Decimal
    may: Decimal
    june: Decimal
    july: Decimal
    august: Decimal
    september: Decimal
    october: Decimal
    november: Decimal
    december: Decimal
    total_collected: Decimal
    balance_due: Decimal

    class Config:
        from_attributes = True


class RecalculateResponse(BaseModel):
    member_id: int
    year: int
    snapshot: Optional[SnapshotOut]
