from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth_deps import get_current_principal
from app.core.deps import get_contract_service
from app.policies.rbac import Principal
from app.schemas.notifications import MarkReadRequest, MarkReadResponse, Notification
from app.services.contract_service import ContractService

router = APIRouter(prefix="/notifications")


@router.get("", response_model=List[Notification])
def list_notifications(
    email: Optional[str] = Query(None),
    svc: ContractService = Depends(get_contract_service),
    principal: Principal = Depends(get_current_principal),
):
    return svc.notifications_for(email or principal.email)


@router.post("/mark-read", response_model=MarkReadResponse)
def mark_read(
    req: MarkReadRequest,
    svc: ContractService = Depends(get_contract_service),
    principal: Principal = Depends(get_current_principal),
):
    return {"updated": svc.mark_read(req.ids)}
