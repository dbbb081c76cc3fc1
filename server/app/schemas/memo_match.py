from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class MemoMatchCreate(BaseModel):
    memo: str = Field(..., min_length=3, max_length=500)
    member_id: int


class MemoMatchOut(BaseModel):
    id: int
    member_id: int
    memo: str
    first_name: Optional[str]
    last_name: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
