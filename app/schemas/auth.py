from __future__ import annotations
from typing import Optional
from pydantic import BaseModel

from app.models.enums import UserRole


class IdentityResponse(BaseModel):
    email: str
    role: UserRole
    subject: Optional[str] = None
