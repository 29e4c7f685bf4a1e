from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.auth_deps import get_current_principal
from app.core.deps import get_contract_service
from app.schemas.stats import DashboardStats
from app.services.contract_service import ContractService

router = APIRouter()


@router.get("/stats", response_model=DashboardStats, dependencies=[Depends(get_current_principal)])
def dashboard_stats(svc: ContractService = Depends(get_contract_service)):
    return svc.stats()
