from __future__ import annotations

import calendar
import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.errors import PledgeBelowMinimum
from app.models.member import Member
from app.models.member_payment import MONTH_FIELDS, YearlyPaymentSnapshot
from app.models.transaction import FinancialTransaction
from app.schemas.dues import (
    DuesDetailsOut,
    DuesMemberOut,
    DuesMonthOut,
    DuesPaymentsOut,
    HouseholdSummaryOut,
    OtherContributionsOut,
)
from app.schemas.transaction import TransactionOut
from app.services.finance_events import TransactionPosted
from app.services.members_directory import get_member_or_404, household_members

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
DUES_PAYMENT_TYPE = "membership_due"
EXCLUDED_STATUSES = ("failed", "canceled")
OTHER_CONTRIBUTION_LABELS = ("donation", "pledge", "tithe", "offering")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS, rounding=ROUND_HALF_UP)


def organization_today() -> date:
    return datetime.now(ZoneInfo(settings.ORGANIZATION_TIMEZONE)).date()


def monthly_due_for(pledge) -> Decimal:
    return (Decimal(str(pledge or 0)) / 12).quantize(CENTS, rounding=ROUND_HALF_UP)


def membership_window(joined: Optional[date], year: int) -> tuple[int, int]:
    """Return ``(join_month, months_required)`` for ``year``."""

    if joined is None or joined.year < year:
        return 1, 12
    if joined.year > year:
        return 13, 0
    return joined.month, 12 - joined.month + 1


def _year_transactions(db: Session, member_id: int, year: int) -> list[FinancialTransaction]:
    return (
        db.query(FinancialTransaction)
        .options(selectinload(FinancialTransaction.member))
        .filter(
            FinancialTransaction.member_id == member_id,
            FinancialTransaction.payment_date >= date(year, 1, 1),
            FinancialTransaction.payment_date <= date(year, 12, 31),
            FinancialTransaction.status.notin_(EXCLUDED_STATUSES),
        )
        .order_by(FinancialTransaction.payment_date.asc(), FinancialTransaction.id.asc())
        .all()
    )


def _monthly_dues(transactions: list[FinancialTransaction]) -> list[Decimal]:
    buckets = [ZERO for _ in range(12)]
    for txn in transactions:
        if txn.payment_type == DUES_PAYMENT_TYPE:
            buckets[txn.payment_date.month - 1] += _money(txn.amount)
    return buckets


def _other_contribution_key(payment_type: str) -> str:
    lowered = (payment_type or "").lower()
    for label in OTHER_CONTRIBUTION_LABELS:
        if label in lowered:
            return label
    return "other"


def _member_summary(member: Member) -> DuesMemberOut:
    return DuesMemberOut(
        id=member.id,
        first_name=member.first_name,
        last_name=member.last_name,
        email=member.email,
        phone=member.phone,
        yearly_pledge=_money(member.yearly_pledge),
        date_joined_parish=member.date_joined_parish,
    )


def _household_summary(db: Session, member: Member) -> HouseholdSummaryOut:
    head, dependents = household_members(db, member)
    is_household_view = member.family_head_id is None and bool(dependents)
    return HouseholdSummaryOut(
        is_household_view=is_household_view,
        head_of_household=_member_summary(head),
        member_names=[dependent.first_name for dependent in dependents],
        total_members=member.household_size or 1,
    )


def dues_details(db: Session, member_id: int, year: int, *, today: Optional[date] = None) -> DuesDetailsOut:
    """Derive the member's dues position for ``year`` from stored transactions only."""

    today = today or organization_today()
    member = get_member_or_404(db, member_id)
    transactions = _year_transactions(db, member.id, year)

    monthly_due = monthly_due_for(member.yearly_pledge)
    join_month, months_required = membership_window(member.date_joined_parish, year)
    total_amount_due = (monthly_due * months_required).quantize(CENTS)

    paid_by_month = _monthly_dues(transactions)
    dues_collected = sum(paid_by_month, ZERO)
    outstanding = max(ZERO, total_amount_due - dues_collected)
    if total_amount_due > 0:
        progress = (dues_collected / total_amount_due * 100).quantize(CENTS, rounding=ROUND_HALF_UP)
    else:
        progress = ZERO

    months: list[DuesMonthOut] = []
    for index in range(12):
        month_number = index + 1
        paid = paid_by_month[index]
        is_future = year > today.year or (year == today.year and month_number > today.month)
        if month_number < join_month:
            status, due = "pre-membership", ZERO
        elif is_future:
            status, due = "upcoming", monthly_due
        elif paid >= monthly_due:
            status, due = "paid", monthly_due
        else:
            status, due = "due", monthly_due
        months.append(
            DuesMonthOut(
                month=month_number,
                name=calendar.month_name[month_number],
                status=status,
                due=due,
                paid=paid,
                is_future=is_future and status == "upcoming",
            )
        )

    future_dues = monthly_due * (12 - today.month) if year == today.year else ZERO

    others = {label: ZERO for label in (*OTHER_CONTRIBUTION_LABELS, "other")}
    for txn in transactions:
        if txn.payment_type == DUES_PAYMENT_TYPE:
            continue
        others[_other_contribution_key(txn.payment_type)] += _money(txn.amount)

    return DuesDetailsOut(
        member=_member_summary(member),
        household=_household_summary(db, member),
        payments=DuesPaymentsOut(
            year=year,
            monthly_due=monthly_due,
            join_month=join_month if months_required else None,
            months_required=months_required,
            total_amount_due=total_amount_due,
            dues_collected=dues_collected,
            outstanding_dues=outstanding,
            dues_progress=progress,
            future_dues=future_dues.quantize(CENTS),
            months=months,
        ),
        other_contributions=OtherContributionsOut(**others),
        grand_total=dues_collected + sum(others.values(), ZERO),
        transactions=[TransactionOut.from_orm(txn) for txn in transactions],
    )


def recalculate_snapshot(
    db: Session,
    member_id: int,
    year: int,
    *,
    reseed: bool = False,
) -> Optional[YearlyPaymentSnapshot]:
    """Re-sum dues for ``year`` into the legacy snapshot row keyed by phone.

    A new row is seeded from the member's current pledge; ``reseed`` forces
    that on an existing row too. Members without a phone are skipped.
    """

    member = get_member_or_404(db, member_id)
    if not member.phone:
        logger.info("dues_snapshot_skipped_no_phone", extra={"member_id": member.id, "year": year})
        return None

    buckets = _monthly_dues(_year_transactions(db, member.id, year))
    snapshot = (
        db.query(YearlyPaymentSnapshot)
        .filter(YearlyPaymentSnapshot.phone1 == member.phone, YearlyPaymentSnapshot.year == year)
        .first()
    )
    if snapshot is None:
        snapshot = YearlyPaymentSnapshot(phone1=member.phone, year=year)
        reseed = True
    if reseed:
        snapshot.total_amount_due = _money(member.yearly_pledge)
        snapshot.monthly_payment = monthly_due_for(member.yearly_pledge)

    snapshot.member_id = member.id
    snapshot.member_name = member.full_name
    for field_name, amount in zip(MONTH_FIELDS, buckets):
        setattr(snapshot, field_name, amount)
    snapshot.total_collected = sum(buckets, ZERO)
    snapshot.balance_due = _money(snapshot.total_amount_due) - snapshot.total_collected

    db.add(snapshot)
    db.commit()
    db.refresh(snapshot)
    logger.info(
        "dues_snapshot_refreshed",
        extra={"member_id": member.id, "year": year, "total_collected": str(snapshot.total_collected)},
    )
    return snapshot


def set_yearly_pledge(db: Session, member_id: int, amount: Decimal, *, today: Optional[date] = None) -> Member:
    minimum = Decimal(str(settings.MINIMUM_YEARLY_PLEDGE))
    if amount < minimum:
        raise PledgeBelowMinimum(
            f"Yearly pledge must be at least {minimum:.2f}",
            minimum=str(minimum),
        )
    member = get_member_or_404(db, member_id)
    member.yearly_pledge = _money(amount)
    db.add(member)
    db.commit()
    db.refresh(member)
    recalculate_snapshot(db, member.id, (today or organization_today()).year, reseed=True)
    return member


def handle_transaction_posted(db: Session, event: TransactionPosted) -> None:
    if event.member_id is None or event.payment_type != DUES_PAYMENT_TYPE:
        return
    try:
        recalculate_snapshot(db, event.member_id, event.payment_date.year)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "dues_snapshot_refresh_failed",
            extra={"member_id": event.member_id, "transaction_id": event.transaction_id},
        )
