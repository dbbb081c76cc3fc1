from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Query, Session, selectinload

from app.core.config import settings
from app.core.errors import DuplicatePosting, NotFoundError, ValidationError
from app.models.ledger_entry import LedgerEntry
from app.models.member import Member
from app.models.transaction import PAYMENT_TYPES, FinancialTransaction
from app.schemas.transaction import (
    ExpenseCreate,
    LedgerEntryOut,
    LedgerListResponse,
    TransactionCreate,
    TransactionListResponse,
    TransactionOut,
)
from app.services import finance_events
from app.services.dues import handle_transaction_posted
from app.services.members_directory import get_member_or_404

logger = logging.getLogger(__name__)

# dues snapshots refresh after every posting
finance_events.subscribe(handle_transaction_posted)

DEFAULT_INCOME_GL_CODE = "INC999"

GL_CODES: dict[str, str] = {
    "membership_due": "INC001",
    "tithe": "INC002",
    "offering": "INC002",
    "event": "INC003",
    "tigray_hunger_fundraiser": "INC003",
    "donation": "INC004",
    "vow": "INC008",
    "other": "INC999",
}

EXPENSE_CATEGORIES: dict[str, str] = {
    "EXP001": "Salary/Allowance",
    "EXP002": "Mortgage",
    "EXP003": "Loan Interest Payment",
    "EXP004": "Monthly Lease Payments",
    "EXP005": "Utility",
    "EXP006": "Cable",
    "EXP007": "Property Insurance",
    "EXP008": "Rent Expense",
    "EXP009": "Credit Card Payment",
    "EXP102": "Building Repairs & Maintenance",
    "EXP103": "Catering, Relief Assistance & Charitable Expenses",
    "EXP104": "Office & Kitchen Equipment and Supplies",
    "EXP106": "Bible, Miscellaneous Items & Teaching Fees",
    "EXP110": "Visiting Priests Allowance & Travel Expenses",
    "EXP999": "Other Expenses",
}

PAYMENT_TYPE_LABELS: dict[str, str] = {code: code.replace("_", " ").title() for code in PAYMENT_TYPES}


def resolve_gl_code(payment_type: str) -> str:
    return GL_CODES.get(payment_type, DEFAULT_INCOME_GL_CODE)


def ensure_payment_type(payment_type: str) -> str:
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError("Unknown payment type", payment_type=payment_type)
    return payment_type


def truncate_note(note: str | None) -> str | None:
    if note is None:
        return None
    return note[: settings.TRANSACTION_NOTE_MAX_LENGTH]


def find_transaction_by_external_id(db: Session, external_id: str | None) -> Optional[FinancialTransaction]:
    if not external_id:
        return None
    return db.query(FinancialTransaction).filter(FinancialTransaction.external_id == external_id).first()


def post_ledger_entry(db: Session, transaction: FinancialTransaction, *, source_system: str) -> LedgerEntry:
    """Write the income entry mirroring ``transaction``, or sync the one it already has.

    Does not commit.
    """

    entry = (
        db.query(LedgerEntry)
        .filter(LedgerEntry.transaction_id == transaction.id)
        .order_by(LedgerEntry.id.asc())
        .first()
    )
    if entry is None:
        entry = LedgerEntry(transaction_id=transaction.id, type="income")
    entry.entry_date = transaction.payment_date
    entry.amount = transaction.amount
    entry.gl_code = resolve_gl_code(transaction.payment_type)
    entry.memo = transaction.note
    entry.source_system = source_system
    entry.payment_method = transaction.payment_method
    entry.external_id = transaction.external_id
    entry.member_id = transaction.member_id
    entry.collector_id = transaction.collected_by
    db.add(entry)
    db.flush()
    return entry


def record_transaction(db: Session, payload: TransactionCreate, collector: Member) -> FinancialTransaction:
    ensure_payment_type(payload.payment_type)
    member = get_member_or_404(db, payload.member_id) if payload.member_id else None
    if member is None and not payload.donor_name:
        raise ValidationError("Either a member or a donor name is required")
    if find_transaction_by_external_id(db, payload.external_id) is not None:
        raise DuplicatePosting("A transaction with this external id already exists", external_id=payload.external_id)

    transaction = FinancialTransaction(
        member_id=member.id if member else None,
        collected_by=collector.id,
        amount=payload.amount,
        payment_date=payload.payment_date,
        payment_type=payload.payment_type,
        payment_method=payload.payment_method,
        status=payload.status,
        external_id=payload.external_id,
        note=truncate_note(payload.note),
        donor_name=payload.donor_name,
        donor_type=payload.donor_type,
    )
    db.add(transaction)
    db.flush()
    post_ledger_entry(db, transaction, source_system="manual")
    db.commit()
    db.refresh(transaction)
    logger.info(
        "transaction_recorded",
        extra={"transaction_id": transaction.id, "member_id": transaction.member_id, "payment_type": transaction.payment_type},
    )
    finance_events.publish(db, finance_events.event_for(transaction))
    return transaction


def record_expense(db: Session, payload: ExpenseCreate, collector: Member) -> LedgerEntry:
    gl_code = payload.category.upper()
    if gl_code not in EXPENSE_CATEGORIES:
        raise ValidationError("Unknown expense category", category=payload.category)
    entry = LedgerEntry(
        transaction_id=None,
        entry_date=payload.entry_date,
        amount=payload.amount,
        type="expense",
        gl_code=gl_code,
        memo=payload.memo or EXPENSE_CATEGORIES[gl_code],
        source_system="manual",
        payment_method=payload.payment_method,
        collector_id=collector.id,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("expense_recorded", extra={"ledger_entry_id": entry.id, "gl_code": gl_code})
    return entry


def get_transaction(db: Session, transaction_id: int) -> FinancialTransaction:
    transaction = db.get(FinancialTransaction, transaction_id)
    if transaction is None:
        raise NotFoundError("Transaction not found", transaction_id=transaction_id)
    return transaction


def _transaction_query(
    db: Session,
    *,
    member_id: Optional[int] = None,
    payment_type: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Query:
    query = db.query(FinancialTransaction).options(selectinload(FinancialTransaction.member))
    if member_id:
        query = query.filter(FinancialTransaction.member_id == member_id)
    if payment_type:
        query = query.filter(FinancialTransaction.payment_type == payment_type)
    if start_date:
        query = query.filter(FinancialTransaction.payment_date >= start_date)
    if end_date:
        query = query.filter(FinancialTransaction.payment_date <= end_date)
    return query.order_by(FinancialTransaction.payment_date.desc(), FinancialTransaction.id.desc())


def list_transactions(
    db: Session,
    *,
    page: int = 1,
    page_size: int = 25,
    member_id: Optional[int] = None,
    payment_type: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> TransactionListResponse:
    query = _transaction_query(
        db, member_id=member_id, payment_type=payment_type, start_date=start_date, end_date=end_date
    )
    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return TransactionListResponse(
        items=[TransactionOut.from_orm(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
    )


def list_ledger_entries(
    db: Session,
    *,
    page: int = 1,
    page_size: int = 25,
    entry_type: Optional[str] = None,
    gl_code: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> LedgerListResponse:
    query = db.query(LedgerEntry)
    if entry_type:
        query = query.filter(LedgerEntry.type == entry_type)
    if gl_code:
        query = query.filter(LedgerEntry.gl_code == gl_code.upper())
    if start_date:
        query = query.filter(LedgerEntry.entry_date >= start_date)
    if end_date:
        query = query.filter(LedgerEntry.entry_date <= end_date)
    query = query.order_by(LedgerEntry.entry_date.desc(), LedgerEntry.id.desc())
    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return LedgerListResponse(
        items=[LedgerEntryOut.from_orm(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
    )
