from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.auth.deps import require_roles
from app.core.db import get_db
from app.models.user import User
from app.schemas.memo_match import MemoMatchCreate, MemoMatchOut
from app.services import memo_matches as memo_service
from app.services.members_directory import get_member_or_404

router = APIRouter(prefix="/memo-matches", tags=["memo-matches"])

FINANCE_ROLES = ("FinanceAdmin", "Admin")


@router.get("", response_model=list[MemoMatchOut])
def list_memo_matches(
    member_id: Optional[int] = Query(None),
    q: Optional[str] = Query(None, max_length=200),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
) -> list[MemoMatchOut]:
    return [MemoMatchOut.from_orm(match) for match in memo_service.list_memo_matches(db, member_id=member_id, q=q)]


@router.post("", response_model=MemoMatchOut, status_code=status.HTTP_201_CREATED)
def create_memo_match(
    payload: MemoMatchCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
) -> MemoMatchOut:
    member = get_member_or_404(db, payload.member_id)
    return MemoMatchOut.from_orm(memo_service.create_memo_match(db, payload.memo, member))


@router.delete("/{match_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_memo_match(
    match_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
) -> Response:
    memo_service.delete_memo_match(db, match_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
