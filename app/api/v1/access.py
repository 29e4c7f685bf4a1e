# app/api/v1/access.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.auth_deps import get_current_principal
from app.core.deps import get_contract_service
from app.policies.rbac import Principal
from app.schemas.contracts import AccessGrant
from app.schemas.events import EventRequest, EventResponse
from app.schemas.notifications import Notification, NudgeRequest
from app.services.contract_service import ContractService

router = APIRouter(prefix="/contract/{contract_id}")


@router.get("/access", response_model=AccessGrant)
def get_access(
    contract_id: str,
    svc: ContractService = Depends(get_contract_service),
    principal: Principal = Depends(get_current_principal),
):
    # 403 until signed; first call after signing generates the grant
    return svc.access(contract_id)


@router.post("/event", response_model=EventResponse)
def record_event(
    contract_id: str,
    req: EventRequest,
    svc: ContractService = Depends(get_contract_service),
    principal: Principal = Depends(get_current_principal),
):
    events, pct = svc.record_event(contract_id, req.event)
    return {"contractId": contract_id, "events": events, "progress": pct}


@router.post("/nudge", response_model=Notification)
def nudge(
    contract_id: str,
    req: NudgeRequest,
    svc: ContractService = Depends(get_contract_service),
    principal: Principal = Depends(get_current_principal),
):
    return svc.nudge(contract_id, sender=req.sender, message=req.message)
