from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.auth.deps import get_current_collector, require_roles
from app.core.db import get_db
from app.models.member import Member
from app.models.user import User
from app.schemas.notification import (
    NotificationCommitRequest,
    NotificationCommitResponse,
    NotificationCommitResultOut,
    NotificationPreviewResponse,
    NotificationProposalOut,
)
from app.schemas.transaction import TransactionOut
from app.services import payment_notifications
from app.services.email_client import get_notification_source
from app.services.payment_notifications import NotificationSource

router = APIRouter(prefix="/notifications", tags=["notifications"])

FINANCE_ROLES = ("FinanceAdmin", "Admin")


@router.get("/preview", response_model=NotificationPreviewResponse)
def preview_notifications(
    limit: int = Query(25, ge=1, le=100),
    db: Session = Depends(get_db),
    source: NotificationSource = Depends(get_notification_source),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
) -> NotificationPreviewResponse:
    proposals = payment_notifications.preview_notifications(db, source, limit=limit)
    return NotificationPreviewResponse(
        items=[NotificationProposalOut(**vars(proposal)) for proposal in proposals],
        total=len(proposals),
    )


@router.post("/commit", response_model=NotificationCommitResponse)
def commit_notifications(
    payload: NotificationCommitRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*FINANCE_ROLES)),
    collector: Optional[Member] = Depends(get_current_collector),
) -> NotificationCommitResponse:
    summary = payment_notifications.commit_notification_matches(db, payload.items, collector)
    return NotificationCommitResponse(
        results=[
            NotificationCommitResultOut(
                external_id=result.external_id,
                status=result.status,
                transaction_id=result.transaction_id,
                code=result.code,
                message=result.message,
                memo_action=result.memo_action,
                transaction=TransactionOut.from_orm(result.transaction) if result.transaction else None,
            )
            for result in summary.results
        ],
        created=summary.count("CREATED"),
        existing=summary.count("EXISTS"),
        failed=summary.count("ERROR"),
    )
