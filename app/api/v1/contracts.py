# app/api/v1/contracts.py
from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response

from app.core.auth_deps import get_current_principal
from app.core.deps import get_contract_service
from app.policies.rbac import Principal, assigned_filter
from app.schemas.contracts import Contract, UploadResponse, VerificationResponse
from app.services.blob_resolver import Blob
from app.services.contract_service import ContractService

router = APIRouter()

FORWARDED_HEADERS = ("Content-Type", "Content-Disposition", "Accept-Ranges")


def _proxy_headers(blob: Blob, filename: str) -> Dict[str, str]:
    """Forward the upstream headers the viewer needs. Content-Encoding never: bytes are already decoded."""
    out = {h: blob.headers[h] for h in FORWARDED_HEADERS if blob.headers.get(h)}
    out.setdefault("Content-Type", "application/pdf")
    out.setdefault("Content-Disposition", f'inline; filename="{filename}"')

    upstream_len = blob.headers.get("Content-Length")
    encoded = bool(blob.headers.get("Content-Encoding"))
    if upstream_len and not encoded and upstream_len == str(len(blob.content)):
        out["Content-Length"] = upstream_len
    else:
        out["Content-Length"] = str(len(blob.content))
    return out


@router.post("/upload", response_model=UploadResponse)
def upload_contract(
    file: UploadFile = File(...),
    distributorEmail: str = Form(...),
    vendorEmail: Optional[str] = Form(None),
    vendorId: Optional[str] = Form(None),
    svc: ContractService = Depends(get_contract_service),
    principal: Principal = Depends(get_current_principal),
):
    data = file.file.read()
    contract = svc.upload(
        data=data,
        original_name=file.filename or "contract.pdf",
        assigned_to_email=distributorEmail,
        vendor_id=vendorId or principal.subject or principal.email,
        vendor_email=vendorEmail or principal.email,
    )
    return {"id": contract.id, "publicUrl": contract.locator.public_url, "contract": contract}


@router.get("/contracts", response_model=List[Contract])
def list_contracts(
    vendor: Optional[str] = Query(None),
    svc: ContractService = Depends(get_contract_service),
    principal: Principal = Depends(get_current_principal),
):
    return svc.list(vendor=vendor, assigned_to=assigned_filter(principal))


@router.get("/contract/{contract_id}", response_model=Contract)
def get_contract(
    contract_id: str,
    svc: ContractService = Depends(get_contract_service),
    principal: Principal = Depends(get_current_principal),
):
    return svc.get(contract_id)


@router.get("/contract/{contract_id}/file")
def get_contract_file(
    contract_id: str,
    original: bool = Query(False),
    svc: ContractService = Depends(get_contract_service),
    principal: Principal = Depends(get_current_principal),
):
    blob, filename = svc.file(contract_id, original=original)
    return Response(content=blob.content, headers=_proxy_headers(blob, filename))


@router.get("/contract/{contract_id}/verify", response_model=VerificationResponse)
def verify_contract(
    contract_id: str,
    svc: ContractService = Depends(get_contract_service),
    principal: Principal = Depends(get_current_principal),
):
    return svc.verify(contract_id)
