from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

PaymentTypeCode = Literal[
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
]
PaymentMethodCode = Literal["cash", "check", "zelle", "credit_card", "debit_card", "ach", "other"]
TransactionStatusCode = Literal["pending", "succeeded", "failed", "canceled"]


class TransactionMemberOut(BaseModel):
    id: int
    first_name: str
    last_name: str

    class Config:
        from_attributes = True


class TransactionCreate(BaseModel):
    member_id: Optional[int] = None
    amount: Decimal = Field(..., gt=0)
    payment_date: date
    payment_type: PaymentTypeCode
    payment_method: PaymentMethodCode
    status: TransactionStatusCode = "succeeded"
    external_id: Optional[str] = Field(None, max_length=255)
    note: Optional[str] = None
    donor_name: Optional[str] = Field(None, max_length=255)
    donor_type: Optional[str] = Field(None, max_length=100)


class TransactionOut(BaseModel):
    id: int
    member_id: Optional[int]
    collected_by: int
    amount: Decimal
    payment_date: date
    payment_type: str
    payment_method: str
    status: str
    external_id: Optional[str]
    note: Optional[str]
    donor_name: Optional[str]
    donor_type: Optional[str]
    created_at: datetime
    member: Optional[TransactionMemberOut] = None

    class Config:
        from_attributes = True


class TransactionListResponse(BaseModel):
    items: List[TransactionOut]
    total: int
    page: int
    page_size: int


class ExpenseCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    entry_date: date
    category: str = Field(..., min_length=1, max_length=50)
    memo: Optional[str] = Field(None, max_length=500)
    payment_method: Optional[PaymentMethodCode] = None


class LedgerEntryOut(BaseModel):
    id: int
    transaction_id: Optional[int]
    entry_date: date
    amount: Decimal
    type: str
    gl_code: str
    memo: Optional[str]
    source_system: str
    payment_method: Optional[str]
    external_id: Optional[str]
    member_id: Optional[int]
    collector_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class LedgerListResponse(BaseModel):
    items: List[LedgerEntryOut]
    total: int
    page: int
    page_size: int
