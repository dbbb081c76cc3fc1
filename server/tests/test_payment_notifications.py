from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.core.errors import CollectorRequired
from app.main import app
from app.models.ledger_entry import LedgerEntry
from app.models.memo_match import MemoMatch
from app.models.transaction import FinancialTransaction
from app.schemas.notification import NotificationCommitItem
from app.services.email_client import get_notification_source, subject_search_criteria
from app.services.memo_matches import upsert_memo_match
from app.services.payment_notifications import (
    PaymentNotification,
    commit_notification_matches,
    parse_notification,
    preview_notifications,
    sanitize_memo,
)

SUBJECT = "You received money with Zelle®"
BODY = "Jane Doe sent you $45.00. Memo: building fund gift"


def _message(message_id: str = "abc123", **overrides) -> PaymentNotification:
    values = {
        "message_id": message_id,
        "subject": SUBJECT,
        "sender": "Chase <no.reply.alerts@chase.com>",
        "body": BODY,
        "received_at": datetime(2024, 6, 2, 3, 0),
    }
    values.update(overrides)
    return PaymentNotification(**values)


class FakeSource:
    def __init__(self, messages: list[PaymentNotification]):
        self.messages = messages

    def fetch(self, limit: int) -> list[PaymentNotification]:
        return self.messages[:limit]


def test_memo_match_yields_creatable_proposal(db_session, sample_member):
    upsert_memo_match(db_session, "Memo: building fund gift", sample_member)
    db_session.commit()

    proposal = parse_notification(db_session, _message())

    assert proposal is not None
    assert proposal.amount == Decimal("45.00")
    assert proposal.memo == "Memo: building fund gift"
    assert proposal.member_id == sample_member.id
    assert proposal.match_type == "MEMO_MATCH"
    assert proposal.external_id == "MSG-abc123"
    assert proposal.would_create is True
    assert db_session.query(FinancialTransaction).count() == 0


def test_non_payment_sender_is_discarded(db_session):
    assert parse_notification(db_session, _message(sender="PayPal <service@paypal.com>")) is None


def test_contact_fallback_uses_phone_and_email(db_session, sample_member):
    by_phone = parse_notification(db_session, _message(body="You got $1,250.00 from (214) 555-0123"))
    by_email = parse_notification(db_session, _message(sender="Abeba <ABEBA@example.com>", body="$10.00 received"))

    assert by_phone.phone == "+12145550123"
    assert by_phone.amount == Decimal("1250.00")
    assert by_phone.member_id == sample_member.id
    assert by_phone.match_type == "CONTACT"
    assert by_email.sender_email == "abeba@example.com"
    assert by_email.member_id == sample_member.id


def test_unmatched_or_amountless_message_is_not_creatable(db_session, sample_member):
    unmatched = parse_notification(db_session, _message(body="Someone sent you $5.00"))
    no_amount = parse_notification(db_session, _message(body="Payment from (214) 555-0123"))

    assert unmatched.member_id is None
    assert unmatched.would_create is False
    assert no_amount.amount is None
    assert no_amount.would_create is False


def test_payment_date_uses_organization_timezone(db_session):
    late_utc = parse_notification(db_session, _message(received_at=datetime(2024, 6, 2, 3, 0)))
    aware = parse_notification(db_session, _message(received_at=datetime(2024, 6, 2, 18, 0, tzinfo=timezone.utc)))

    assert late_utc.payment_date == date(2024, 6, 1)
    assert aware.payment_date == date(2024, 6, 2)


def test_existing_transaction_blocks_creation(db_session, sample_member, collector):
    upsert_memo_match(db_session, "Memo: building fund gift", sample_member)
    existing = FinancialTransaction(
        member_id=sample_member.id,
        collected_by=collector.id,
        amount=Decimal("45.00"),
        payment_date=date(2024, 6, 1),
        payment_type="donation",
        payment_method="zelle",
        external_id="MSG-abc123",
    )
    db_session.add(existing)
    db_session.commit()

    proposal = parse_notification(db_session, _message())

    assert proposal.already_exists is True
    assert proposal.existing_transaction_id == existing.id
    assert proposal.would_create is False


def test_sanitize_memo_strips_boilerplate():
    assert sanitize_memo("Hello  there | Memo N/A") == "Hello there"
    assert sanitize_memo("JANE DOE is registered with a Zelle®\n\nthanks") == "JANE DOE thanks"


def test_preview_filters_and_orders_messages(db_session):
    source = FakeSource([_message("one"), _message("two", sender="service@paypal.com"), _message("three")])

    proposals = preview_notifications(db_session, source, limit=10)

    assert [proposal.message_id for proposal in proposals] == ["one", "three"]


def test_commit_creates_transactions_and_learns_memo(db_session, sample_member, collector):
    item = NotificationCommitItem(
        external_id="MSG-abc123",
        member_id=sample_member.id,
        amount=Decimal("45.00"),
        payment_date=date(2024, 6, 1),
        payment_type="donation",
        memo="Memo: building fund gift",
    )

    summary = commit_notification_matches(db_session, [item], collector)

    [result] = summary.results
    assert result.status == "CREATED"
    assert result.memo_action == "created"
    transaction = db_session.get(FinancialTransaction, result.transaction_id)
    assert transaction.payment_method == "zelle"
    assert transaction.collected_by == collector.id
    entry = db_session.query(LedgerEntry).one()
    assert entry.source_system == "email_import"
    assert entry.gl_code == "INC004"
    assert db_session.query(MemoMatch).one().member_id == sample_member.id

    again = commit_notification_matches(db_session, [item], collector)

    assert again.results[0].status == "EXISTS"
    assert again.results[0].transaction_id == transaction.id
    assert db_session.query(FinancialTransaction).count() == 1


def test_commit_repoints_memo_to_confirmed_member(db_session, sample_member, member_factory, collector):
    other = member_factory(first_name="Dawit", last_name="Alemu")
    upsert_memo_match(db_session, "Memo: building fund gift", other)
    db_session.commit()
    item = NotificationCommitItem(
        external_id="MSG-xyz",
        member_id=sample_member.id,
        amount=Decimal("20.00"),
        payment_date=date(2024, 6, 1),
        memo="Memo: building fund gift",
    )

    summary = commit_notification_matches(db_session, [item], collector)

    assert summary.results[0].memo_action == "repointed"
    match = db_session.query(MemoMatch).one()
    assert match.member_id == sample_member.id
    assert match.first_name == "Abeba"


def test_commit_isolates_failing_items(db_session, sample_member, collector):
    items = [
        NotificationCommitItem(
            external_id="MSG-missing", member_id=9999, amount=Decimal("5.00"), payment_date=date(2024, 6, 1)
        ),
        NotificationCommitItem(
            external_id="MSG-good", member_id=sample_member.id, amount=Decimal("5.00"), payment_date=date(2024, 6, 1)
        ),
    ]

    summary = commit_notification_matches(db_session, items, collector)

    assert [result.status for result in summary.results] == ["ERROR", "CREATED"]
    assert summary.results[0].code == "not_found"


def test_commit_requires_collector(db_session, sample_member):
    item = NotificationCommitItem(
        external_id="MSG-1", member_id=sample_member.id, amount=Decimal("5.00"), payment_date=date(2024, 6, 1)
    )

    with pytest.raises(CollectorRequired):
        commit_notification_matches(db_session, [item], None)


def test_subject_search_criteria():
    assert subject_search_criteria([]) == "ALL"
    assert subject_search_criteria(["zelle"]) == '(SUBJECT "zelle")'
    assert subject_search_criteria(["zelle", "payment received", "you received"]) == (
        '(OR SUBJECT "zelle" OR SUBJECT "payment received" SUBJECT "you received")'
    )


def test_preview_endpoint_uses_injected_source(client, authorize, finance_user, sample_member):
    authorize(finance_user)
    app.dependency_overrides[get_notification_source] = lambda: FakeSource(
        [_message(body="Payment of $12.00 from 214-555-0123")]
    )

    response = client.get("/notifications/preview", params={"limit": 5})

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["member_id"] == sample_member.id
    assert data["items"][0]["would_create"] is True


def test_preview_endpoint_reports_unconfigured_inbox(client, authorize, finance_user):
    authorize(finance_user)

    response = client.get("/notifications/preview")

    assert response.status_code == 503
    assert response.json()["code"] == "dependency_unavailable"


def test_commit_endpoint(client, authorize, finance_user, sample_member):
    authorize(finance_user)

    response = client.post(
        "/notifications/commit",
        json={
            "items": [
                {
                    "external_id": "MSG-api",
                    "member_id": sample_member.id,
                    "amount": "45.00",
                    "payment_date": "2024-06-01",
                    "payment_type": "membership_due",
                    "memo": "Memo: dues",
                }
            ]
        },
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["created"] == 1
    assert data["results"][0]["transaction"]["external_id"] == "MSG-api"
