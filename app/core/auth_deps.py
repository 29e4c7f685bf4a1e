#app/core/auth_deps.py
from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.core.security import decode_token
from app.models.enums import UserRole
from app.policies.rbac import Principal

bearer = HTTPBearer(auto_error=True)


def get_current_principal(
    request: Request,
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> Principal:
    """
    Canonical authentication dependency.

    Guarantees:
    - JWT is valid (signature + expiry)
    - an email is present (`email` claim, else `sub`)
    - role is a valid UserRole
    """

    try:
        payload = decode_token(creds.credentials, settings=request.app.state.settings)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token.")

    email = payload.get("email") or payload.get("sub")
    role = payload.get("role")

    if not email or not role:
        raise HTTPException(status_code=401, detail="Token missing required claims.")

    try:
        role_enum = UserRole(str(role).lower())
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid role in token.")

    principal = Principal(
        email=str(email).strip().lower(),
        role=role_enum,
        subject=payload.get("sub"),
    )

    # Make principal available to downstream middleware / handlers
    request.state.principal = principal

    return principal
