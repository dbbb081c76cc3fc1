from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from app.schemas.transaction import LedgerEntryOut, PaymentTypeCode, TransactionOut

BankStatus = Literal["PENDING", "MATCHED", "IGNORED"]


class ImportErrorOut(BaseModel):
    line: int
    reason: str


class ImportSummaryOut(BaseModel):
    imported: int
    skipped: int
    malformed: int
    errors: List[ImportErrorOut] = []


class SuggestedMatchOut(BaseModel):
    member_id: int
    first_name: str
    last_name: str
    match_type: Literal["MEMO_MATCH", "FUZZY_NAME"]


class PotentialMatchOut(BaseModel):
    id: int
    member_id: Optional[int]
    amount: Decimal
    payment_date: date
    payment_type: str
    donor_name: Optional[str]

    class Config:
        from_attributes = True


class BankTransactionOut(BaseModel):
    id: int
    date: date
    amount: Decimal
    balance: Optional[Decimal]
    description: str
    type: str
    status: BankStatus
    payer_name: Optional[str]
    external_ref_id: Optional[str]
    check_number: Optional[str]
    member_id: Optional[int]
    created_at: datetime
    suggested_match: Optional[SuggestedMatchOut] = None
    potential_matches: List[PotentialMatchOut] = []

    class Config:
        from_attributes = True


class BankTransactionListResponse(BaseModel):
    items: List[BankTransactionOut]
    total: int
    page: int
    page_size: int
    current_balance: Optional[Decimal]


class BalanceOut(BaseModel):
    current_balance: Optional[Decimal]


class ReconcileRequest(BaseModel):
    bank_transaction_id: int
    member_id: Optional[int] = None
    payment_type: PaymentTypeCode = "donation"
    manual_donor_name: Optional[str] = Field(None, max_length=255)
    manual_donor_type: Optional[str] = Field(None, max_length=100)
    existing_transaction_id: Optional[int] = None
    for_year: Optional[int] = Field(None, ge=1900, le=2100)


class BatchReconcileRequest(BaseModel):
    items: List[ReconcileRequest] = Field(..., min_length=1)
    stop_on_error: bool = False


class ReconcileResponse(BaseModel):
    bank_transaction: BankTransactionOut
    transaction: TransactionOut
    ledger_entry: LedgerEntryOut


class BatchReconcileErrorOut(BaseModel):
    index: int
    bank_transaction_id: int
    code: str
    message: str


class BatchReconcileResponse(BaseModel):
    succeeded: List[ReconcileResponse]
    errors: List[BatchReconcileErrorOut]
