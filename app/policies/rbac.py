#app/policies/rbac.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from app.models.enums import UserRole


@dataclass(frozen=True)
class Principal:
    email: str
    role: UserRole
    subject: Optional[str] = None


def assigned_filter(principal: Principal) -> Optional[str]:
    """
    Distributors only ever see contracts assigned to their own email.
    Vendors are not restricted here (no multi-tenant policy in the core).
    """
    if principal.role == UserRole.distributor:
        return principal.email
    return None
