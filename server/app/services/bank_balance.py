from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session, aliased

from app.models.bank_transaction import BankTransaction

CENTS = Decimal("0.01")


def current_balance(db: Session) -> Optional[Decimal]:
    """Latest known statement balance plus every newer row's amount.

    The anchor is the newest row carrying a balance (ties on date go to the
    lowest id). Anchor and delta are read in a single statement.
    """

    anchor = (
        select(BankTransaction.id, BankTransaction.date, BankTransaction.balance)
        .where(BankTransaction.balance.is_not(None))
        .order_by(BankTransaction.date.desc(), BankTransaction.id.asc())
        .limit(1)
        .subquery("anchor")
    )
    newer = aliased(BankTransaction)
    delta = (
        select(func.coalesce(func.sum(newer.amount), 0))
        .where(
            or_(
                newer.date > anchor.c.date,
                and_(newer.date == anchor.c.date, newer.id > anchor.c.id),
            )
        )
        .scalar_subquery()
    )
    row = db.execute(select(anchor.c.balance, delta)).first()
    if row is None:
        return None
    balance, pending = row
    total = Decimal(str(balance)) + Decimal(str(pending))
    return total.quantize(CENTS)
