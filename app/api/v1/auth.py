#app/api/v1/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.auth_deps import get_current_principal
from app.policies.rbac import Principal
from app.schemas.auth import IdentityResponse

router = APIRouter(prefix="/user")


@router.post("/identify", response_model=IdentityResponse)
def identify(principal: Principal = Depends(get_current_principal)):
    # identity lives with the external provider; this only echoes what the token proves
    return {"email": principal.email, "role": principal.role, "subject": principal.subject}
