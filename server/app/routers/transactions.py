from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.auth.deps import get_current_collector, require_roles
from app.core.db import get_db
from app.core.errors import CollectorRequired
from app.models.member import Member
from app.models.user import User
from app.schemas.transaction import TransactionCreate, TransactionListResponse, TransactionOut
from app.services import ledger as ledger_service

router = APIRouter(prefix="/transactions", tags=["transactions"])

FINANCE_ROLES = ("FinanceAdmin", "Admin")
VIEW_ROLES = ("FinanceAdmin", "Admin", "OfficeAdmin")


@router.get("", response_model=TransactionListResponse)
def list_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    member_id: Optional[int] = Query(None),
    payment_type: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*VIEW_ROLES)),
) -> TransactionListResponse:
    return ledger_service.list_transactions(
        db,
        page=page,
        page_size=page_size,
        member_id=member_id,
        payment_type=payment_type,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
def create_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
    collector: Optional[Member] = Depends(get_current_collector),
) -> TransactionOut:
    if collector is None:
        raise CollectorRequired()
    transaction = ledger_service.record_transaction(db, payload, collector)
    return TransactionOut.from_orm(transaction)
