from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import (
    AlreadyReconciled,
    CollectorRequired,
    DependencyError,
    DuplicatePosting,
    FinanceError,
    NotFoundError,
    ValidationError,
)
from app.models.bank_transaction import BankTransaction
from app.models.ledger_entry import LedgerEntry
from app.models.member import Member
from app.models.transaction import FinancialTransaction
from app.schemas.bank import (
    BankTransactionListResponse,
    BankTransactionOut,
    PotentialMatchOut,
    ReconcileRequest,
    SuggestedMatchOut,
)
from app.services import finance_events
from app.services.bank_balance import current_balance
from app.services.ledger import (
    PAYMENT_TYPE_LABELS,
    ensure_payment_type,
    find_transaction_by_external_id,
    get_transaction,
    post_ledger_entry,
    truncate_note,
)
from app.services.members_directory import get_member_or_404, search_members_by_name
from app.services.memo_matches import find_memo_match, memo_from_bank_description, upsert_memo_match

logger = logging.getLogger(__name__)

POTENTIAL_MATCH_WINDOW_DAYS = 5
PROCESSED_STATUSES = ("MATCHED", "IGNORED")


@dataclass
class ReconcileResult:
    bank_transaction: BankTransaction
    transaction: FinancialTransaction
    ledger_entry: LedgerEntry


@dataclass
class BatchReconcileError:
    index: int
    bank_transaction_id: int
    code: str
    message: str


@dataclass
class BatchReconcileResult:
    succeeded: List[ReconcileResult] = field(default_factory=list)
    errors: List[BatchReconcileError] = field(default_factory=list)


def bank_external_id(bank_transaction_id: int) -> str:
    return f"BANK-{bank_transaction_id}"


def payment_method_for(bank_type: str | None) -> str:
    upper = (bank_type or "").upper()
    if "ZELLE" in upper:
        return "zelle"
    if "CHECK" in upper:
        return "check"
    return "ach"


def payment_date_for(bank_date: date, for_year: Optional[int]) -> date:
    if not for_year:
        return bank_date
    try:
        return bank_date.replace(year=for_year)
    except ValueError:
        # Feb 29 into a non-leap year
        return bank_date.replace(year=for_year, day=28)


def _lock_bank_transaction(db: Session, bank_transaction_id: int) -> BankTransaction:
    bank_txn = (
        db.query(BankTransaction)
        .filter(BankTransaction.id == bank_transaction_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if bank_txn is None:
        raise NotFoundError("Bank transaction not found", bank_transaction_id=bank_transaction_id)
    if bank_txn.status in PROCESSED_STATUSES:
        raise AlreadyReconciled(
            "Bank transaction was already processed",
            bank_transaction_id=bank_transaction_id,
            status=bank_txn.status,
        )
    return bank_txn


def _build_note(donor_label: str, payment_type: str, description: str) -> str:
    label = PAYMENT_TYPE_LABELS.get(payment_type, payment_type)
    return truncate_note(f"{donor_label} - {label} - {description}")


def _apply_reconciliation(
    db: Session,
    bank_transaction_id: int,
    *,
    collector: Optional[Member],
    member_id: Optional[int],
    payment_type: str,
    manual_donor_name: Optional[str],
    manual_donor_type: Optional[str],
    existing_transaction_id: Optional[int],
    for_year: Optional[int],
) -> ReconcileResult:
    bank_txn = _lock_bank_transaction(db, bank_transaction_id)

    external_id = bank_external_id(bank_txn.id)
    holder = find_transaction_by_external_id(db, external_id)
    if holder is not None and holder.id != existing_transaction_id:
        raise DuplicatePosting(
            "A transaction already carries this bank reference",
            external_id=external_id,
            transaction_id=holder.id,
        )

    existing = get_transaction(db, existing_transaction_id) if existing_transaction_id else None

    if collector is None:
        raise CollectorRequired()
    if member_id is None and not manual_donor_name and existing is None:
        raise ValidationError("A member, a donor name or an existing transaction is required")
    member = get_member_or_404(db, member_id) if member_id else None
    ensure_payment_type(payment_type)

    if existing is not None:
        if existing.external_id and existing.external_id != external_id:
            raise DuplicatePosting(
                "Transaction is already linked to another source",
                transaction_id=existing.id,
                external_id=existing.external_id,
            )
        transaction = existing
        if member is None and transaction.member_id:
            member = db.get(Member, transaction.member_id)
        if member is None and manual_donor_name:
            transaction.donor_name = manual_donor_name
            transaction.donor_type = manual_donor_type
    else:
        transaction = FinancialTransaction(
            collected_by=collector.id,
            donor_name=None if member else manual_donor_name,
            donor_type=None if member else manual_donor_type,
        )

    donor_label = member.full_name if member is not None else (transaction.donor_name or "Unknown donor")
    transaction.member_id = member.id if member else None
    transaction.amount = bank_txn.amount
    transaction.payment_date = payment_date_for(bank_txn.date, for_year)
    transaction.payment_type = payment_type
    transaction.payment_method = payment_method_for(bank_txn.type)
    transaction.status = "succeeded"
    transaction.external_id = external_id
    transaction.note = _build_note(donor_label, payment_type, bank_txn.description)
    db.add(transaction)
    db.flush()

    entry = post_ledger_entry(db, transaction, source_system="bank_import")

    bank_txn.status = "MATCHED"
    bank_txn.member_id = member.id if member else None
    db.add(bank_txn)

    if member is not None:
        upsert_memo_match(db, memo_from_bank_description(bank_txn.description), member)

    db.flush()
    return ReconcileResult(bank_transaction=bank_txn, transaction=transaction, ledger_entry=entry)


def reconcile(
    db: Session,
    bank_transaction_id: int,
    *,
    collector: Optional[Member],
    member_id: Optional[int] = None,
    payment_type: str = "donation",
    manual_donor_name: Optional[str] = None,
    manual_donor_type: Optional[str] = None,
    existing_transaction_id: Optional[int] = None,
    for_year: Optional[int] = None,
) -> ReconcileResult:
    """Post a pending bank row as a financial transaction with its ledger entry.

    Everything commits together or nothing does. The dues listeners run after
    the commit through ``finance_events``.
    """

    try:
        result = _apply_reconciliation(
            db,
            bank_transaction_id,
            collector=collector,
            member_id=member_id,
            payment_type=payment_type,
            manual_donor_name=manual_donor_name,
            manual_donor_type=manual_donor_type,
            existing_transaction_id=existing_transaction_id,
            for_year=for_year,
        )
        db.commit()
    except FinanceError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        raise DuplicatePosting(
            "A transaction already carries this bank reference",
            external_id=bank_external_id(bank_transaction_id),
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("bank_reconcile_storage_failed", extra={"bank_transaction_id": bank_transaction_id})
        raise DependencyError("Ledger storage is unavailable") from exc

    logger.info(
        "bank_transaction_reconciled",
        extra={
            "bank_transaction_id": result.bank_transaction.id,
            "transaction_id": result.transaction.id,
            "member_id": result.transaction.member_id,
            "payment_type": result.transaction.payment_type,
        },
    )
    finance_events.publish(db, finance_events.event_for(result.transaction))
    return result


def batch_reconcile(
    db: Session,
    items: Iterable[ReconcileRequest],
    *,
    collector: Optional[Member],
    stop_on_error: bool = False,
) -> BatchReconcileResult:
    """Reconcile items in order, each in its own unit of work.

    With ``stop_on_error`` the first failure ends the batch; earlier items stay posted.
    """

    outcome = BatchReconcileResult()
    for index, item in enumerate(items):
        try:
            outcome.succeeded.append(
                reconcile(
                    db,
                    item.bank_transaction_id,
                    collector=collector,
                    member_id=item.member_id,
                    payment_type=item.payment_type,
                    manual_donor_name=item.manual_donor_name,
                    manual_donor_type=item.manual_donor_type,
                    existing_transaction_id=item.existing_transaction_id,
                    for_year=item.for_year,
                )
            )
        except FinanceError as exc:
            outcome.errors.append(
                BatchReconcileError(
                    index=index,
                    bank_transaction_id=item.bank_transaction_id,
                    code=exc.code,
                    message=exc.message,
                )
            )
            logger.warning(
                "bank_batch_item_failed",
                extra={"index": index, "bank_transaction_id": item.bank_transaction_id, "code": exc.code},
            )
            if stop_on_error:
                break
    return outcome


def ignore_bank_transaction(db: Session, bank_transaction_id: int) -> BankTransaction:
    try:
        bank_txn = _lock_bank_transaction(db, bank_transaction_id)
    except FinanceError:
        db.rollback()
        raise
    bank_txn.status = "IGNORED"
    db.add(bank_txn)
    db.commit()
    db.refresh(bank_txn)
    logger.info("bank_transaction_ignored", extra={"bank_transaction_id": bank_txn.id})
    return bank_txn


def suggest_match(db: Session, bank_txn: BankTransaction) -> Optional[SuggestedMatchOut]:
    memo = find_memo_match(db, memo_from_bank_description(bank_txn.description))
    if memo is not None:
        return SuggestedMatchOut(
            member_id=memo.member_id,
            first_name=memo.first_name or "",
            last_name=memo.last_name or "",
            match_type="MEMO_MATCH",
        )

    candidates = search_members_by_name(db, bank_txn.payer_name)
    if len(candidates) == 1:
        member = candidates[0]
        return SuggestedMatchOut(
            member_id=member.id,
            first_name=member.first_name,
            last_name=member.last_name,
            match_type="FUZZY_NAME",
        )
    return None


def potential_matches(db: Session, bank_txn: BankTransaction) -> list[FinancialTransaction]:
    """Unposted transactions with the same absolute amount within a few days of the bank row."""

    window = timedelta(days=POTENTIAL_MATCH_WINDOW_DAYS)
    return (
        db.query(FinancialTransaction)
        .filter(
            func.abs(FinancialTransaction.amount) == abs(bank_txn.amount),
            FinancialTransaction.payment_date >= bank_txn.date - window,
            FinancialTransaction.payment_date <= bank_txn.date + window,
            FinancialTransaction.external_id.is_(None),
        )
        .order_by(FinancialTransaction.payment_date.asc(), FinancialTransaction.id.asc())
        .limit(10)
        .all()
    )


def _serialize_bank_transaction(db: Session, bank_txn: BankTransaction) -> BankTransactionOut:
    payload = BankTransactionOut.from_orm(bank_txn)
    if bank_txn.status == "PENDING":
        payload.suggested_match = suggest_match(db, bank_txn)
        payload.potential_matches = [PotentialMatchOut.from_orm(row) for row in potential_matches(db, bank_txn)]
    return payload


def list_bank_transactions(
    db: Session,
    *,
    page: int = 1,
    page_size: int = 50,
    status_filter: Optional[str] = None,
    type_filter: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    description: Optional[str] = None,
) -> BankTransactionListResponse:
    query = db.query(BankTransaction)
    if status_filter:
        query = query.filter(BankTransaction.status == status_filter.upper())
    if type_filter:
        query = query.filter(BankTransaction.type == type_filter.upper())
    if start_date:
        query = query.filter(BankTransaction.date >= start_date)
    if end_date:
        query = query.filter(BankTransaction.date <= end_date)
    if description:
        query = query.filter(func.lower(BankTransaction.description).like(f"%{description.lower()}%"))
    query = query.order_by(BankTransaction.date.desc(), BankTransaction.id.desc())

    total = query.count()
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    return BankTransactionListResponse(
        items=[_serialize_bank_transaction(db, row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
        current_balance=current_balance(db),
    )
