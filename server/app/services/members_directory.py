from __future__ import annotations

import re
from typing import Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.models.member import Member

NAME_TOKEN_MIN_LENGTH = 3


def normalize_phone(value: str | None) -> str | None:
    """Return a +1XXXXXXXXXX phone or None when the digits do not form a NANP number."""

    digits = re.sub(r"\D", "", value or "")
    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]
    if len(digits) != 10:
        return None
    return f"+1{digits}"


def find_member_by_id(db: Session, member_id: int) -> Optional[Member]:
    return db.get(Member, member_id)


def get_member_or_404(db: Session, member_id: int) -> Member:
    member = find_member_by_id(db, member_id)
    if member is None:
        raise NotFoundError("Member not found", member_id=member_id)
    return member


def find_member_by_phone(db: Session, phone: str | None) -> Optional[Member]:
    normalized = normalize_phone(phone)
    if not normalized:
        return None
    return db.query(Member).filter(Member.phone == normalized).order_by(Member.id.asc()).first()


def find_member_by_email_or_phone(db: Session, email: str | None, phone: str | None) -> Optional[Member]:
    if email:
        member = (
            db.query(Member)
            .filter(func.lower(Member.email) == email.strip().lower())
            .order_by(Member.id.asc())
            .first()
        )
        if member:
            return member
    return find_member_by_phone(db, phone)


def search_members_by_name(db: Session, name_text: str | None) -> list[Member]:
    """Members whose first or last name contains every token of ``name_text``."""

    tokens = [
        token
        for token in re.sub(r"[^a-z\s]", " ", (name_text or "").lower()).split()
        if len(token) >= NAME_TOKEN_MIN_LENGTH
    ]
    if not tokens:
        return []
    clauses = [
        or_(
            func.lower(Member.first_name).like(f"%{token}%"),
            func.lower(Member.last_name).like(f"%{token}%"),
        )
        for token in tokens
    ]
    return db.query(Member).filter(and_(*clauses)).order_by(Member.id.asc()).limit(10).all()


def household_members(db: Session, member: Member) -> tuple[Member, list[Member]]:
    """Return the household head and its dependents with a single query."""

    head_id = member.family_head_id or member.id
    rows = (
        db.query(Member)
        .filter(or_(Member.id == head_id, Member.family_head_id == head_id))
        .order_by(Member.id.asc())
        .all()
    )
    head = next((row for row in rows if row.id == head_id), member)
    dependents = [row for row in rows if row.id != head_id]
    return head, dependents
