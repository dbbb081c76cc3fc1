from __future__ import annotations

import csv
import hashlib
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ValidationError
from app.models.bank_transaction import BankTransaction

logger = logging.getLogger(__name__)

COLUMNS = ("details", "posting_date", "description", "amount", "type", "balance", "check_number")
MIN_FIELDS = 4
DATE_FORMAT = "%m/%d/%Y"

ZELLE_PREFIX = re.compile(r"^.*?zelle\s+(?:payment|transfer)\s+from\s+", re.IGNORECASE)
TRAILING_REFERENCE = re.compile(r"\s+(?P<ref>\d+)$")
ACH_IND_NAME = re.compile(r"IND NAME:(?P<name>\S+)", re.IGNORECASE)
CHECK_PREFIX = re.compile(r"^CHECK\s+(?P<number>\d+)", re.IGNORECASE)

TYPE_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("ZELLE", "ZELLE"),
    ("CHECK", "CHECK"),
    ("ACH", "ACH"),
)


@dataclass
class ImportErrorDetail:
    line: int
    reason: str


@dataclass
class ImportSummary:
    imported: int = 0
    skipped: int = 0
    malformed: int = 0
    errors: List[ImportErrorDetail] = field(default_factory=list)


class MalformedRow(Exception):
    def __init__(self, line: int, reason: str):
        super().__init__(reason)
        self.line = line
        self.reason = reason


@dataclass
class ParsedRow:
    line: int
    posting_date: date
    description: str
    amount: Decimal
    balance: Optional[Decimal]
    check_number: Optional[str]
    raw: dict

    @property
    def transaction_hash(self) -> str:
        return compute_hash(self.posting_date, self.description, self.amount)


def compute_hash(posting_date: date, description: str, amount: Decimal) -> str:
    source = f"{posting_date.isoformat()}|{description}|{amount}"
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


def decode_statement(file_bytes: bytes) -> str:
    max_bytes = settings.BANK_IMPORT_MAX_FILE_SIZE_MB * 1024 * 1024
    if len(file_bytes) > max_bytes:
        raise ValidationError(f"Statement file is larger than the allowed {settings.BANK_IMPORT_MAX_FILE_SIZE_MB}MB")
    try:
        return file_bytes.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ValidationError("Statement file must be UTF-8 encoded") from exc


def _clean_number(value: str | None) -> str:
    return (value or "").replace("$", "").replace(",", "").replace('"', "").strip()


def _parse_amount(value: str | None) -> Optional[Decimal]:
    cleaned = _clean_number(value)
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned)
        if not amount.is_finite():
            return None
        return amount.quantize(Decimal("0.01"))
    except InvalidOperation:
        return None


def _parse_date(value: str | None) -> Optional[date]:
    try:
        return datetime.strptime((value or "").strip(), DATE_FORMAT).date()
    except ValueError:
        return None


def _is_header(fields: list[str]) -> bool:
    if not fields or fields[0].strip().lower() != "details":
        return False
    return len(fields) < 2 or _parse_date(fields[1]) is None


def classify_type(description: str) -> str:
    upper = description.upper()
    for keyword, label in TYPE_KEYWORDS:
        if keyword in upper:
            return label
    return "OTHER"


def extract_payer(description: str) -> tuple[Optional[str], Optional[str]]:
    """Best-effort payer name and reference id from a bank description.

    Zelle rows read ``Zelle payment from FIRST LAST 12345``; ACH rows carry
    ``IND NAME:LAST,FIRST``.
    """

    text = (description or "").strip()
    if ZELLE_PREFIX.match(text):
        remainder = ZELLE_PREFIX.sub("", text, count=1)
        reference = None
        ref_match = TRAILING_REFERENCE.search(remainder)
        if ref_match:
            reference = ref_match.group("ref")
            remainder = remainder[: ref_match.start()]
        remainder = remainder.strip()
        if remainder:
            return remainder, reference
    match = ACH_IND_NAME.search(text)
    if match:
        raw = match.group("name")
        if "," in raw:
            last, first = raw.split(",", 1)
            return f"{first.strip()} {last.strip()}".strip(), None
        return raw, None
    return None, None


def parse_row(line: int, fields: list[str]) -> ParsedRow:
    if len(fields) < MIN_FIELDS:
        raise MalformedRow(line, f"expected at least {MIN_FIELDS} fields, got {len(fields)}")
    padded = list(fields) + [""] * (len(COLUMNS) - len(fields))
    raw = dict(zip(COLUMNS, (value.strip() for value in padded)))

    posting_date = _parse_date(raw["posting_date"])
    if posting_date is None:
        raise MalformedRow(line, f"unparsable posting date '{raw['posting_date']}'")
    amount = _parse_amount(raw["amount"])
    if amount is None:
        raise MalformedRow(line, f"unparsable amount '{raw['amount']}'")

    return ParsedRow(
        line=line,
        posting_date=posting_date,
        description=raw["description"],
        amount=amount,
        balance=_parse_amount(raw["balance"]),
        check_number=raw["check_number"] or None,
        raw=raw,
    )


def _store_row(db: Session, row: ParsedRow) -> str:
    existing = db.query(BankTransaction).filter(BankTransaction.transaction_hash == row.transaction_hash).first()
    if existing is not None:
        if existing.balance is None and row.balance is not None:
            existing.balance = row.balance
            existing.raw_data = row.raw
            db.add(existing)
            return "imported"
        return "skipped"

    bank_type = classify_type(row.description)
    payer_name, reference = extract_payer(row.description)
    check_number = row.check_number
    if not check_number:
        check_match = CHECK_PREFIX.match(row.description)
        if check_match:
            check_number = check_match.group("number")
    db.add(
        BankTransaction(
            transaction_hash=row.transaction_hash,
            date=row.posting_date,
            amount=row.amount,
            balance=row.balance,
            description=row.description,
            type=bank_type,
            status="PENDING",
            payer_name=payer_name,
            external_ref_id=reference,
            check_number=check_number,
            raw_data=row.raw,
        )
    )
    return "imported"


def import_statement(db: Session, rows: Iterable[str] | str) -> ImportSummary:
    """Import bank statement lines, one commit per row.

    ``rows`` is either the decoded file text or an iterable of raw lines.
    Quoted fields may span lines; errors report the line a record starts on.
    """

    raw_lines = rows.splitlines() if isinstance(rows, str) else rows
    lines = [line.rstrip("\r\n") + "\n" for line in raw_lines]
    summary = ImportSummary()
    header_checked = False
    reader = csv.reader(lines)
    last_line = 0

    while True:
        line_number = last_line + 1
        try:
            fields = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            last_line = reader.line_num
            summary.malformed += 1
            summary.errors.append(ImportErrorDetail(line=line_number, reason=str(exc)))
            logger.warning("bank_row_malformed", extra={"line": line_number, "reason": str(exc)})
            continue
        last_line = reader.line_num
        if not any(value.strip() for value in fields):
            continue
        if not header_checked:
            header_checked = True
            if _is_header(fields):
                continue

        try:
            parsed = parse_row(line_number, fields)
        except MalformedRow as exc:
            summary.malformed += 1
            summary.errors.append(ImportErrorDetail(line=exc.line, reason=exc.reason))
            logger.warning("bank_row_malformed", extra={"line": exc.line, "reason": exc.reason})
            continue

        try:
            outcome = _store_row(db, parsed)
            db.commit()
        except IntegrityError:
            db.rollback()
            outcome = "skipped"
        if outcome == "imported":
            summary.imported += 1
        else:
            summary.skipped += 1

    logger.info(
        "bank_statement_imported",
        extra={"imported": summary.imported, "skipped": summary.skipped, "malformed": summary.malformed},
    )
    return summary
