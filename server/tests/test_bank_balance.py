from __future__ import annotations

from datetime import date
from decimal import Decimal

from app.models.bank_transaction import BankTransaction
from app.services.bank_balance import current_balance


def _row(session, day: date, amount: str, balance: str | None = None, label: str = "row") -> BankTransaction:
    record = BankTransaction(
        transaction_hash=f"{day.isoformat()}-{label}-{amount}",
        date=day,
        amount=Decimal(amount),
        balance=Decimal(balance) if balance is not None else None,
        description=label,
        type="OTHER",
        status="PENDING",
    )
    session.add(record)
    session.commit()
    return record


def test_no_anchor_returns_none(db_session):
    _row(db_session, date(2024, 6, 1), "10.00")

    assert current_balance(db_session) is None


def test_balance_adds_rows_newer_than_anchor(db_session):
    _row(db_session, date(2024, 5, 30), "999.00", label="older")
    _row(db_session, date(2024, 6, 1), "100.00", "5000.00", label="anchor")
    _row(db_session, date(2024, 6, 2), "-200.00", label="debit")
    _row(db_session, date(2024, 6, 3), "150.00", label="credit")

    assert current_balance(db_session) == Decimal("4950.00")


def test_balance_independent_of_insertion_order(db_session):
    _row(db_session, date(2024, 6, 3), "150.00", label="credit")
    _row(db_session, date(2024, 6, 2), "-200.00", label="debit")
    _row(db_session, date(2024, 6, 1), "100.00", "5000.00", label="anchor")

    assert current_balance(db_session) == Decimal("4950.00")


def test_newest_balance_wins_as_anchor(db_session):
    _row(db_session, date(2024, 6, 1), "100.00", "5000.00", label="first")
    _row(db_session, date(2024, 6, 4), "50.00", "6000.00", label="second")
    _row(db_session, date(2024, 6, 5), "25.00", label="later")

    assert current_balance(db_session) == Decimal("6025.00")


def test_same_day_rows_after_anchor_id_are_added(db_session):
    _row(db_session, date(2024, 6, 1), "10.00", "1000.00", label="anchor")
    _row(db_session, date(2024, 6, 1), "20.00", "1020.00", label="second-with-balance")
    _row(db_session, date(2024, 6, 1), "5.00", label="third")

    assert current_balance(db_session) == Decimal("1025.00")


def test_balance_endpoint(client, authorize, office_admin_user, db_session):
    authorize(office_admin_user)
    _row(db_session, date(2024, 6, 1), "100.00", "5000.00", label="anchor")
    _row(db_session, date(2024, 6, 2), "-20.50", label="debit")

    response = client.get("/bank/balance")

    assert response.status_code == 200, response.text
    assert Decimal(response.json()["current_balance"]) == Decimal("4979.50")
