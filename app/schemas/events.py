from __future__ import annotations
from pydantic import BaseModel

from app.models.enums import ContractEvent
from app.schemas.contracts import ContractEvents


class EventRequest(BaseModel):
    event: ContractEvent


class EventResponse(BaseModel):
    contractId: str
    events: ContractEvents
    progress: int
