from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.auth.deps import require_roles
from app.core.db import get_db
from app.models.user import User
from app.schemas.dues import DuesDetailsOut, DuesMemberOut, PledgeUpdate, RecalculateResponse, SnapshotOut
from app.services import dues as dues_service

router = APIRouter(prefix="/dues", tags=["dues"])

FINANCE_ROLES = ("FinanceAdmin", "Admin")
VIEW_ROLES = ("FinanceAdmin", "Admin", "OfficeAdmin")


@router.get("/{member_id}", response_model=DuesDetailsOut)
def get_dues(
    member_id: int,
    year: Optional[int] = Query(None, ge=1900, le=2100),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*VIEW_ROLES)),
) -> DuesDetailsOut:
    target_year = year or dues_service.organization_today().year
    return dues_service.dues_details(db, member_id, target_year)


@router.post("/{member_id}/recalculate", response_model=RecalculateResponse)
def recalculate_dues(
    member_id: int,
    year: Optional[int] = Query(None, ge=1900, le=2100),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
) -> RecalculateResponse:
    target_year = year or dues_service.organization_today().year
    snapshot = dues_service.recalculate_snapshot(db, member_id, target_year)
    return RecalculateResponse(
        member_id=member_id,
        year=target_year,
        snapshot=SnapshotOut.from_orm(snapshot) if snapshot else None,
    )


@router.put("/{member_id}/pledge", response_model=DuesMemberOut)
def update_pledge(
    member_id: int,
    payload: PledgeUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
) -> DuesMemberOut:
    member = dues_service.set_yearly_pledge(db, member_id, payload.yearly_pledge)
    return DuesMemberOut(
        id=member.id,
        first_name=member.first_name,
        last_name=member.last_name,
        email=member.email,
        phone=member.phone,
        yearly_pledge=member.yearly_pledge,
        date_joined_parish=member.date_joined_parish,
    )
