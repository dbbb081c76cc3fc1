from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.auth.deps import get_current_collector, require_roles
from app.core.db import get_db
from app.models.member import Member
from app.models.user import User
from app.schemas.bank import (
    BalanceOut,
    BankTransactionListResponse,
    BankTransactionOut,
    BatchReconcileErrorOut,
    BatchReconcileRequest,
    BatchReconcileResponse,
    ImportErrorOut,
    ImportSummaryOut,
    ReconcileRequest,
    ReconcileResponse,
)
from app.schemas.transaction import LedgerEntryOut, TransactionOut
from app.services import reconciliation
from app.services.bank_balance import current_balance
from app.services.bank_import import decode_statement, import_statement

router = APIRouter(prefix="/bank", tags=["bank"])

FINANCE_ROLES = ("FinanceAdmin", "Admin")
VIEW_ROLES = ("FinanceAdmin", "Admin", "OfficeAdmin")
UPLOAD_CONTENT_TYPES = {"text/csv", "application/vnd.ms-excel", "text/plain", "application/octet-stream"}


def _reconcile_response(result: reconciliation.ReconcileResult) -> ReconcileResponse:
    return ReconcileResponse(
        bank_transaction=BankTransactionOut.from_orm(result.bank_transaction),
        transaction=TransactionOut.from_orm(result.transaction),
        ledger_entry=LedgerEntryOut.from_orm(result.ledger_entry),
    )


@router.post("/upload", response_model=ImportSummaryOut, status_code=status.HTTP_200_OK)
def upload_statement(
    file: UploadFile = File(..., media_type="text/csv"),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
) -> ImportSummaryOut:
    if file.content_type not in UPLOAD_CONTENT_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be a CSV upload")
    try:
        file_bytes = file.file.read()
    finally:
        file.file.close()

    summary = import_statement(db, decode_statement(file_bytes))
    return ImportSummaryOut(
        imported=summary.imported,
        skipped=summary.skipped,
        malformed=summary.malformed,
        errors=[ImportErrorOut(line=error.line, reason=error.reason) for error in summary.errors],
    )


@router.get("/transactions", response_model=BankTransactionListResponse)
def list_bank_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    status_filter: Optional[str] = Query(None, alias="status"),
    type_filter: Optional[str] = Query(None, alias="type"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    description: Optional[str] = Query(None, max_length=200),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*VIEW_ROLES)),
) -> BankTransactionListResponse:
    return reconciliation.list_bank_transactions(
        db,
        page=page,
        page_size=page_size,
        status_filter=status_filter,
        type_filter=type_filter,
        start_date=start_date,
        end_date=end_date,
        description=description,
    )


@router.get("/balance", response_model=BalanceOut)
def get_balance(
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*VIEW_ROLES)),
) -> BalanceOut:
    return BalanceOut(current_balance=current_balance(db))


@router.post("/reconcile", response_model=ReconcileResponse)
def reconcile_bank_transaction(
    payload: ReconcileRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
    collector: Optional[Member] = Depends(get_current_collector),
) -> ReconcileResponse:
    result = reconciliation.reconcile(
        db,
        payload.bank_transaction_id,
        collector=collector,
        member_id=payload.member_id,
        payment_type=payload.payment_type,
        manual_donor_name=payload.manual_donor_name,
        manual_donor_type=payload.manual_donor_type,
        existing_transaction_id=payload.existing_transaction_id,
        for_year=payload.for_year,
    )
    return _reconcile_response(result)


@router.post("/reconcile/batch", response_model=BatchReconcileResponse)
def batch_reconcile(
    payload: BatchReconcileRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
    collector: Optional[Member] = Depends(get_current_collector),
) -> BatchReconcileResponse:
    outcome = reconciliation.batch_reconcile(
        db, payload.items, collector=collector, stop_on_error=payload.stop_on_error
    )
    return BatchReconcileResponse(
        succeeded=[_reconcile_response(result) for result in outcome.succeeded],
        errors=[
            BatchReconcileErrorOut(
                index=error.index,
                bank_transaction_id=error.bank_transaction_id,
                code=error.code,
                message=error.message,
            )
            for error in outcome.errors
        ],
    )


@router.post("/transactions/{bank_transaction_id}/ignore", response_model=BankTransactionOut)
def ignore_bank_transaction(
    bank_transaction_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
) -> BankTransactionOut:
    return BankTransactionOut.from_orm(reconciliation.ignore_bank_transaction(db, bank_transaction_id))
