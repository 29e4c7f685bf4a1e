from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas.contracts import DomainModel


class Notification(DomainModel):
    id: str
    contract_id: str
    sender: str = Field(..., alias="from")
    recipient: str = Field(..., alias="to")
    message: str
    created_at: datetime
    read: bool = False


class NudgeRequest(BaseModel):
    sender: str = Field(..., alias="from", min_length=1)
    message: Optional[str] = None


class MarkReadRequest(BaseModel):
    ids: List[str] = Field(default_factory=list)


class MarkReadResponse(BaseModel):
    updated: int
