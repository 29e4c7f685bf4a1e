from __future__ import annotations

import logging
from typing import Optional

import requests

from app.schemas.contracts import AccessGrant, Contract

logger = logging.getLogger(__name__)


class InviteNotifier:
    """
    Best-effort team-chat invitation via webhook.
    Never raises: the outcome is a bool the caller records on the grant.
    """

    def __init__(self, webhook_url: Optional[str], *, timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._session = session or requests.Session()

    def send_invite(self, contract: Contract, grant: AccessGrant) -> bool:
        if not self.webhook_url:
            logger.info("invite webhook not configured, skipping", extra={"contract_id": contract.id})
            return False
        payload = {
            "event": "contract_signed",
            "contractId": contract.id,
            "email": contract.assigned_to_email,
            "vendorEmail": contract.vendor_email,
            "tools": [t.model_dump(by_alias=True) for t in grant.tools],
        }
        try:
            r = self._session.post(self.webhook_url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("invite webhook unreachable", extra={"contract_id": contract.id, "error": str(exc)})
            return False
        if r.status_code >= 400:
            logger.warning("invite webhook rejected", extra={"contract_id": contract.id, "status": r.status_code})
            return False
        return True
