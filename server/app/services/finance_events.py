from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionPosted:
    transaction_id: int
    member_id: Optional[int]
    payment_type: str
    payment_date: date


Listener = Callable[[Session, TransactionPosted], None]

_listeners: list[Listener] = []


def subscribe(listener: Listener) -> None:
    if listener not in _listeners:
        _listeners.append(listener)


def publish(db: Session, event: TransactionPosted) -> None:
    """Notify listeners of a committed posting.

    Must be called after the posting transaction has committed. A failing
    listener is logged and its partial work rolled back; the posting stays.
    """

    for listener in list(_listeners):
        try:
            listener(db, event)
        except Exception:
            db.rollback()
            logger.exception(
                "finance_event_listener_failed",
                extra={"listener": getattr(listener, "__name__", repr(listener)), "transaction_id": event.transaction_id},
            )


def event_for(transaction) -> TransactionPosted:
    return TransactionPosted(
        transaction_id=transaction.id,
        member_id=transaction.member_id,
        payment_type=transaction.payment_type,
        payment_date=transaction.payment_date,
    )
