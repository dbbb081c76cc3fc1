from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.core.db import Base

MemberStatus = Enum("Active", "Inactive", "Pending", "Archived", name="member_status")


class Member(Base):
    __tablename__ = "members"

    id = Column(Integer, primary_key=True)
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(25), nullable=True, index=True)
    status = Column(MemberStatus, nullable=False, default="Active")
    yearly_pledge = Column(Numeric(12, 2), nullable=True)
    date_joined_parish = Column(Date, nullable=True)
    # Household tree: dependents point at their head. Dependents are resolved by
    # querying family_head_id, never through a collection on the head.
    family_head_id = Column(Integer, ForeignKey("members.id", ondelete="SET NULL"), nullable=True, index=True)
    household_size = Column(Integer, nullable=False, default=1)
    address = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    family_head = relationship("Member", remote_side=[id], foreign_keys=[family_head_id])

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(part for part in parts if part)
