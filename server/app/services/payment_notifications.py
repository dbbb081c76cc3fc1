from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Protocol
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import CollectorRequired, DependencyError, FinanceError
from app.models.member import Member
from app.models.transaction import FinancialTransaction
from app.schemas.notification import NotificationCommitItem
from app.services import finance_events
from app.services.ledger import ensure_payment_type, find_transaction_by_external_id, post_ledger_entry, truncate_note
from app.services.members_directory import find_member_by_email_or_phone, get_member_or_404
from app.services.memo_matches import find_memo_match, upsert_memo_match

logger = logging.getLogger(__name__)

AMOUNT_PATTERN = re.compile(r"\$\s?([0-9]{1,3}(?:,[0-9]{3})*(?:\.[0-9]{2})|[0-9]+\.[0-9]{2})")
PHONE_PATTERN = re.compile(r"(?<!\d)(?:\+?1[\s.-]?)?\(?(\d{3})\)?[\s.-]?(\d{3})[\s.-]?(\d{4})(?!\d)")
BRACKETED_EMAIL = re.compile(r"<([^>]+)>")
BARE_EMAIL = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
MEMO_SNIPPET_LENGTH = 160

_BOILERPLATE: tuple[re.Pattern[str], ...] = (
    re.compile(r"You received money with Zelle(?:®)?", re.IGNORECASE),
    re.compile(r"(\s*\|\s*)?Memo N/A", re.IGNORECASE),
    re.compile(r"\s*is registered with a Zelle(?:®)?", re.IGNORECASE),
)


@dataclass
class PaymentNotification:
    message_id: str
    subject: str
    sender: str
    body: str
    received_at: Optional[datetime] = None


@dataclass
class NotificationProposal:
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
    match_type: Optional[str] = None
    already_exists: bool = False
    existing_transaction_id: Optional[int] = None
    would_create: bool = False
    error: Optional[str] = None


@dataclass
class NotificationCommitResult:
    external_id: str
    status: str
    transaction_id: Optional[int] = None
    code: Optional[str] = None
    message: Optional[str] = None
    memo_action: Optional[str] = None
    transaction: Optional[FinancialTransaction] = None


@dataclass
class NotificationCommitSummary:
    results: List[NotificationCommitResult] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for result in self.results if result.status == status)


class NotificationSource(Protocol):
    def fetch(self, limit: int) -> list[PaymentNotification]: ...


def message_external_id(message_id: str) -> str:
    return f"MSG-{message_id}"


def sanitize_memo(text: str | None) -> str:
    cleaned = text or ""
    for pattern in _BOILERPLATE:
        cleaned = pattern.sub("", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def extract_amount(body: str) -> Optional[Decimal]:
    match = AMOUNT_PATTERN.search(body or "")
    if not match:
        return None
    return Decimal(match.group(1).replace(",", ""))


def extract_phone(body: str) -> Optional[str]:
    match = PHONE_PATTERN.search(body or "")
    if not match:
        return None
    return "+1" + "".join(match.groups())


def extract_sender_email(sender: str) -> Optional[str]:
    match = BRACKETED_EMAIL.search(sender or "")
    if match:
        return match.group(1).strip().lower()
    match = BARE_EMAIL.search(sender or "")
    return match.group(0).lower() if match else None


def build_memo(subject: str, body: str) -> str:
    note = subject or ""
    memo_idx = (body or "").lower().find("memo")
    if memo_idx >= 0:
        note = f"{note}\n{body[memo_idx:memo_idx + MEMO_SNIPPET_LENGTH]}"
    return sanitize_memo(note)


def local_payment_date(received_at: Optional[datetime]) -> date:
    tz = ZoneInfo(settings.ORGANIZATION_TIMEZONE)
    if received_at is None:
        return datetime.now(tz).date()
    if received_at.tzinfo is None:
        received_at = received_at.replace(tzinfo=timezone.utc)
    return received_at.astimezone(tz).date()


def _is_non_payment_sender(sender: str) -> bool:
    lowered = (sender or "").lower()
    return any(address.lower() in lowered for address in settings.NON_PAYMENT_SENDERS)


def parse_notification(db: Session, message: PaymentNotification) -> Optional[NotificationProposal]:
    """Turn a payment notification into a reviewable proposal. Never writes."""

    if _is_non_payment_sender(message.sender):
        return None

    external_id = message_external_id(message.message_id)
    sender_email = extract_sender_email(message.sender)
    phone = extract_phone(message.body)
    memo = build_memo(message.subject, message.body)
    proposal = NotificationProposal(
        message_id=message.message_id,
        external_id=external_id,
        subject=message.subject,
        sender_email=sender_email,
        amount=extract_amount(message.body),
        payment_date=local_payment_date(message.received_at),
        memo=memo or None,
        phone=phone,
    )

    member: Optional[Member] = None
    memo_match = find_memo_match(db, memo)
    if memo_match is not None:
        member = db.get(Member, memo_match.member_id)
        proposal.match_type = "MEMO_MATCH"
    if member is None:
        member = find_member_by_email_or_phone(db, sender_email, phone)
        proposal.match_type = "CONTACT" if member else None
    if member is not None:
        proposal.member_id = member.id
        proposal.member_name = f"{member.first_name} {member.last_name}"

    existing = find_transaction_by_external_id(db, external_id)
    if existing is not None:
        proposal.already_exists = True
        proposal.existing_transaction_id = existing.id

    proposal.would_create = proposal.amount is not None and member is not None and not proposal.already_exists
    return proposal


def preview_notifications(db: Session, source: NotificationSource, *, limit: int = 25) -> list[NotificationProposal]:
    proposals: list[NotificationProposal] = []
    for message in source.fetch(limit):
        try:
            proposal = parse_notification(db, message)
        except (ValueError, InvalidOperation) as exc:
            logger.warning("notification_parse_failed", extra={"message_id": message.message_id, "error": str(exc)})
            proposals.append(
                NotificationProposal(
                    message_id=message.message_id,
                    external_id=message_external_id(message.message_id),
                    subject=message.subject,
                    error=str(exc),
                )
            )
            continue
        if proposal is not None:
            proposals.append(proposal)
    return proposals


def _existing_result(item: NotificationCommitItem, existing: FinancialTransaction) -> NotificationCommitResult:
    return NotificationCommitResult(
        external_id=item.external_id,
        status="EXISTS",
        transaction_id=existing.id,
        code="EXISTS",
        message="Transaction already recorded",
    )


def _commit_one(db: Session, item: NotificationCommitItem, collector: Member) -> NotificationCommitResult:
    existing = find_transaction_by_external_id(db, item.external_id)
    if existing is not None:
        return _existing_result(item, existing)

    ensure_payment_type(item.payment_type)
    member = get_member_or_404(db, item.member_id)
    transaction = FinancialTransaction(
        member_id=member.id,
        collected_by=collector.id,
        amount=item.amount,
        payment_date=item.payment_date,
        payment_type=item.payment_type,
        payment_method="zelle",
        status="succeeded",
        external_id=item.external_id,
        note=truncate_note(item.memo),
    )
    db.add(transaction)
    db.flush()
    post_ledger_entry(db, transaction, source_system="email_import")
    _, memo_action = upsert_memo_match(db, item.memo, member)
    db.commit()
    db.refresh(transaction)
    return NotificationCommitResult(
        external_id=item.external_id,
        status="CREATED",
        transaction_id=transaction.id,
        memo_action=memo_action,
        transaction=transaction,
    )


def commit_notification_matches(
    db: Session,
    items: Iterable[NotificationCommitItem],
    collector: Optional[Member],
) -> NotificationCommitSummary:
    """Post confirmed proposals, each item in its own unit of work."""

    if collector is None:
        raise CollectorRequired()

    summary = NotificationCommitSummary()
    for item in items:
        try:
            result = _commit_one(db, item, collector)
        except FinanceError as exc:
            db.rollback()
            result = NotificationCommitResult(
                external_id=item.external_id, status="ERROR", code=exc.code, message=exc.message
            )
        except IntegrityError as exc:
            db.rollback()
            existing = find_transaction_by_external_id(db, item.external_id)
            if existing is None:
                raise DependencyError("Ledger storage rejected the posting") from exc
            result = _existing_result(item, existing)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("notification_commit_storage_failed", extra={"external_id": item.external_id})
            raise DependencyError("Ledger storage is unavailable") from exc

        summary.results.append(result)
        if result.transaction is not None:
            logger.info(
                "notification_payment_recorded",
                extra={
                    "external_id": item.external_id,
                    "transaction_id": result.transaction_id,
                    "memo_action": result.memo_action,
                },
            )
            finance_events.publish(db, finance_events.event_for(result.transaction))
    return summary
