# app/api/v1/signing.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from app.core.auth_deps import get_current_principal
from app.core.deps import Services, get_contract_service, get_services
from app.policies.rbac import Principal
from app.schemas.sign import SignRequest, SignResponse
from app.services.contract_service import ContractService

router = APIRouter()


@router.post("/sign", response_model=SignResponse)
def sign_contract(
    req: SignRequest,
    svc: ContractService = Depends(get_contract_service),
    principal: Principal = Depends(get_current_principal),
):
    record, grant = svc.sign(
        req.contractId,
        signer_name=req.signerName,
        signature_data_url=req.signatureImageDataUrl,
    )
    return {"signatureRecord": record, "accessGrant": grant}


@router.get("/keys/public", response_class=PlainTextResponse, dependencies=[Depends(get_current_principal)])
def public_key(services: Services = Depends(get_services)):
    # PEM (SPKI); enough to re-check any issued signature offline
    return services.key_store.public_key_pem()
