from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.auth.deps import get_current_collector, require_roles
from app.core.db import get_db
from app.core.errors import CollectorRequired
from app.models.member import Member
from app.models.user import User
from app.schemas.transaction import ExpenseCreate, LedgerEntryOut, LedgerListResponse
from app.services import ledger as ledger_service

router = APIRouter(prefix="/ledger", tags=["ledger"])

FINANCE_ROLES = ("FinanceAdmin", "Admin")


@router.get("", response_model=LedgerListResponse)
def list_ledger_entries(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    entry_type: Optional[Literal["income", "expense"]] = Query(None, alias="type"),
    gl_code: Optional[str] = Query(None, max_length=20),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
) -> LedgerListResponse:
    return ledger_service.list_ledger_entries(
        db,
        page=page,
        page_size=page_size,
        entry_type=entry_type,
        gl_code=gl_code,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("/expenses", response_model=LedgerEntryOut, status_code=status.HTTP_201_CREATED)
def create_expense(
    payload: ExpenseCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
    collector: Optional[Member] = Depends(get_current_collector),
) -> LedgerEntryOut:
    if collector is None:
        raise CollectorRequired()
    return LedgerEntryOut.from_orm(ledger_service.record_expense(db, payload, collector))
