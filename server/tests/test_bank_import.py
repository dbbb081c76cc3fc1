from __future__ import annotations

from datetime import date
from decimal import Decimal

from app.core.config import settings
from app.models.bank_transaction import BankTransaction
from app.services.bank_import import classify_type, compute_hash, extract_payer, import_statement

HEADER = "Details,Posting Date,Description,Amount,Type,Balance,Check or Slip #"
ZELLE_ROW = 'Details,06/01/2024,"ZELLE TRANSFER FROM JANE DOE",150.00,DEBIT,"5,000.00",'


def test_zelle_row_imports_as_pending_record(db_session):
    summary = import_statement(db_session, [ZELLE_ROW])

    assert (summary.imported, summary.skipped, summary.malformed) == (1, 0, 0)
    record = db_session.query(BankTransaction).one()
    assert record.status == "PENDING"
    assert record.date == date(2024, 6, 1)
    assert record.amount == Decimal("150.00")
    assert record.balance == Decimal("5000.00")
    assert record.type == "ZELLE"
    assert record.payer_name == "JANE DOE"
    assert record.transaction_hash == compute_hash(date(2024, 6, 1), "ZELLE TRANSFER FROM JANE DOE", Decimal("150.00"))


def test_header_row_is_skipped(db_session):
    text = "\n".join([HEADER, "CREDIT,06/02/2024,DEPOSIT,25.00,DEP,,"])

    summary = import_statement(db_session, text)

    assert summary.imported == 1
    assert summary.malformed == 0
    assert db_session.query(BankTransaction).count() == 1


def test_reimport_is_idempotent(db_session):
    rows = [ZELLE_ROW, "CREDIT,06/02/2024,DEPOSIT,25.00,DEP,,"]
    import_statement(db_session, rows)

    summary = import_statement(db_session, rows)

    assert summary.imported == 0
    assert summary.skipped == 2
    assert db_session.query(BankTransaction).count() == 2


def test_overlapping_statements_import_the_union(db_session):
    first = ["CREDIT,06/02/2024,DEPOSIT A,25.00,DEP,,", "CREDIT,06/03/2024,DEPOSIT B,30.00,DEP,,"]
    second = ["CREDIT,06/03/2024,DEPOSIT B,30.00,DEP,,", "CREDIT,06/04/2024,DEPOSIT C,35.00,DEP,,"]

    import_statement(db_session, first)
    summary = import_statement(db_session, second)

    assert summary.imported == 1
    assert summary.skipped == 1
    assert db_session.query(BankTransaction).count() == 3


def test_missing_balance_is_backfilled(db_session):
    import_statement(db_session, ["CREDIT,06/02/2024,DEPOSIT,25.00,DEP,,"])

    summary = import_statement(db_session, ['CREDIT,06/02/2024,DEPOSIT,25.00,DEP,"1,025.00",'])

    assert summary.imported == 1
    record = db_session.query(BankTransaction).one()
    assert record.balance == Decimal("1025.00")


def test_malformed_rows_are_counted_not_fatal(db_session):
    rows = [
        "CREDIT,13/45/2024,BAD DATE,10.00,DEP,,",
        "",
        "CREDIT,06/01/2024,BAD AMOUNT,abc,DEP,,",
        "too,few",
        "X,06/01/2024,\"FOO\",NaN,DEBIT,,",
        "CREDIT,06/05/2024,GOOD ROW,-12.50,DEBIT,,",
    ]

    summary = import_statement(db_session, rows)

    assert summary.imported == 1
    assert summary.skipped == 0
    assert summary.malformed == 4
    assert [error.line for error in summary.errors] == [1, 3, 4, 5]
    record = db_session.query(BankTransaction).one()
    assert record.amount == Decimal("-12.50")


def test_quoted_description_may_span_lines(db_session):
    text = "\n".join(
        [
            'CREDIT,06/03/2024,"Zelle payment from JANE',
            'DOE 5512",25.00,QUICKPAY_CREDIT,,',
            "CREDIT,06/04/2024,BAD,xyz,DEP,,",
        ]
    )

    summary = import_statement(db_session, text)

    assert summary.imported == 1
    assert summary.malformed == 1
    assert [error.line for error in summary.errors] == [3]
    record = db_session.query(BankTransaction).one()
    assert record.description == "Zelle payment from JANE\nDOE 5512"
    assert record.amount == Decimal("25.00")


def test_check_number_taken_from_description(db_session):
    import_statement(db_session, ["DEBIT,06/02/2024,CHECK 1582,-200.00,CHECK_PAID,,"])

    record = db_session.query(BankTransaction).one()
    assert record.type == "CHECK"
    assert record.check_number == "1582"


def test_payer_extraction_patterns():
    assert extract_payer("Zelle payment from ALMAZ G TESFAY 27250625041") == ("ALMAZ G TESFAY", "27250625041")
    assert extract_payer("ORIG CO NAME:RAYTHEON ACH IND NAME:BERHE,SELAMAWIT TRN:1") == ("SELAMAWIT BERHE", None)
    assert extract_payer("ATM WITHDRAWAL") == (None, None)
    assert classify_type("Online ACH payment") == "ACH"
    assert classify_type("POS DEBIT GROCERY") == "OTHER"


def test_upload_endpoint_returns_summary(client, authorize, finance_user):
    authorize(finance_user)
    content = "\n".join([HEADER, ZELLE_ROW, "CREDIT,bad,ROW,1.00,DEP,,"])

    response = client.post(
        "/bank/upload",
        files={"file": ("statement.csv", content.encode("utf-8"), "text/csv")},
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["imported"] == 1
    assert data["skipped"] == 0
    assert data["malformed"] == 1
    assert data["errors"][0]["line"] == 3


def test_upload_rejects_oversized_file(client, authorize, finance_user, monkeypatch):
    authorize(finance_user)
    monkeypatch.setattr(settings, "BANK_IMPORT_MAX_FILE_SIZE_MB", 0)

    response = client.post(
        "/bank/upload",
        files={"file": ("statement.csv", ZELLE_ROW.encode("utf-8"), "text/csv")},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_upload_requires_finance_role(client, authorize, registrar_user):
    authorize(registrar_user)

    response = client.post(
        "/bank/upload",
        files={"file": ("statement.csv", ZELLE_ROW.encode("utf-8"), "text/csv")},
    )

    assert response.status_code == 403
