from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from app.schemas.transaction import PaymentTypeCode, TransactionOut


class NotificationProposalOut(BaseModel):
    message_id: str
    external_id: str
    subject: Optional[str] = None
    sender_email: Optional[str] = None
    amount: Optional[Decimal] = None
    payment_date: Optional[date] = None
    memo: Optional[str] = None
    phone: Optional[str] = None
    member_id: Optional[int] = None
    member_name: Optional[str] = None
    match_type: Optional[Literal["MEMO_MATCH", "CONTACT"]] = None
    already_exists: bool = False
    existing_transaction_id: Optional[int] = None
    would_create: bool = False
    error: Optional[str] = None


class NotificationPreviewResponse(BaseModel):
    items: List[NotificationProposalOut]
    total: int


class NotificationCommitItem(BaseModel):
    external_id: str = Field(..., min_length=1, max_length=255)
    member_id: int
    amount: Decimal = Field(..., gt=0)
    payment_date: date
    payment_type: PaymentTypeCode = "donation"
    memo: Optional[str] = Field(None, max_length=500)


class NotificationCommitRequest(BaseModel):
    items: List[NotificationCommitItem] = Field(..., min_length=1)


class NotificationCommitResultOut(BaseModel):
    external_id: str
    status: Literal["CREATED", "EXISTS", "ERROR"]
    transaction_id: Optional[int] = None
    code: Optional[str] = None
    message: Optional[str] = None
    memo_action: Optional[str] = None
    transaction: Optional[TransactionOut] = None


class NotificationCommitResponse(BaseModel):
    results: List[NotificationCommitResultOut]
    created: int
    existing: int
    failed: int
