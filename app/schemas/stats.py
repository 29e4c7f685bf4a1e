from __future__ import annotations
from typing import Dict, List
from pydantic import BaseModel, Field

from app.schemas.contracts import Contract


class VendorStats(BaseModel):
    total: int = 0
    signed: int = 0
    onboarded: int = 0


class DashboardStats(BaseModel):
    total: int
    signed: int
    onboarded: int
    byVendor: Dict[str, VendorStats] = Field(default_factory=dict)
    recent: List[Contract] = Field(default_factory=list)
