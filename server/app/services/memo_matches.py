from __future__ import annotations

import logging
import re
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError
from app.models.member import Member
from app.models.memo_match import MemoMatch

logger = logging.getLogger(__name__)

MIN_LEARNABLE_MEMO_LENGTH = 3

_BANK_MEMO_CLEANUPS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^.*?zelle\s+(?:payment|transfer)\s+from\s+", re.IGNORECASE), ""),
    (re.compile(r"^CHECK\s+\d+\s+", re.IGNORECASE), ""),
    (re.compile(r"ORIG CO NAME:", re.IGNORECASE), ""),
    (re.compile(r"IND NAME:", re.IGNORECASE), ""),
    (re.compile(r"\d{1,2}/\d{1,2}/\d{2,4}"), ""),
    (re.compile(r"\s+\d+$"), ""),
)


def normalize_memo(text: str | None) -> str:
    return " ".join((text or "").split())


def memo_from_bank_description(description: str | None) -> str:
    """Reduce a bank description to the stable part worth learning, e.g. the payer name."""

    cleaned = (description or "").strip()
    for pattern, replacement in _BANK_MEMO_CLEANUPS:
        cleaned = pattern.sub(replacement, cleaned)
    return normalize_memo(cleaned)


def find_memo_match(db: Session, memo: str | None) -> Optional[MemoMatch]:
    normalized = normalize_memo(memo)
    if not normalized:
        return None
    return (
        db.query(MemoMatch)
        .filter(func.lower(MemoMatch.memo) == normalized.lower())
        .order_by(MemoMatch.id.asc())
        .first()
    )


def upsert_memo_match(db: Session, memo: str | None, member: Member) -> tuple[Optional[MemoMatch], str]:
    """Learn ``memo -> member``. Last writer wins when the memo already points elsewhere.

    Does not commit; the caller owns the unit of work.
    """

    normalized = normalize_memo(memo)
    if len(normalized) < MIN_LEARNABLE_MEMO_LENGTH:
        return None, "skipped"

    existing = find_memo_match(db, normalized)
    if existing is None:
        match = MemoMatch(
            member_id=member.id,
            memo=normalized,
            first_name=member.first_name,
            last_name=member.last_name,
        )
        db.add(match)
        db.flush()
        return match, "created"

    if existing.member_id != member.id:
        logger.info(
            "memo_match_repointed",
            extra={"memo_match_id": existing.id, "old_member_id": existing.member_id, "new_member_id": member.id},
        )
        existing.member_id = member.id
        existing.first_name = member.first_name
        existing.last_name = member.last_name
        db.add(existing)
        db.flush()
        return existing, "repointed"
    return existing, "unchanged"


def list_memo_matches(db: Session, *, member_id: int | None = None, q: str | None = None) -> list[MemoMatch]:
    query = db.query(MemoMatch)
    if member_id:
        query = query.filter(MemoMatch.member_id == member_id)
    if q:
        query = query.filter(func.lower(MemoMatch.memo).like(f"%{q.lower()}%"))
    return query.order_by(MemoMatch.memo.asc()).all()


def create_memo_match(db: Session, memo: str, member: Member) -> MemoMatch:
    normalized = normalize_memo(memo)
    if find_memo_match(db, normalized) is not None:
        raise ConflictError("Memo is already mapped to a member", memo=normalized)
    match, _ = upsert_memo_match(db, normalized, member)
    if match is None:
        raise ConflictError("Memo is too short to match reliably", memo=normalized)
    db.commit()
    db.refresh(match)
    return match


def delete_memo_match(db: Session, match_id: int) -> None:
    match = db.get(MemoMatch, match_id)
    if match is None:
        raise NotFoundError("Memo match not found", memo_match_id=match_id)
    db.delete(match)
    db.commit()
