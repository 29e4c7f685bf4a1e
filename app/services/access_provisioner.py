from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from app.core.errors import Forbidden
from app.models.enums import ContractStatus
from app.schemas.contracts import AccessGrant, Contract, Credentials, Tool
from app.services.contract_registry import ContractRegistry
from app.services.notifier import InviteNotifier
from app.services.progress_engine import MAX_PROGRESS, progress

logger = logging.getLogger(__name__)

COURSE_TOOL = "Onboarding Course"
TEAM_CHAT_TOOL = "Team Chat (Slack)"
DASHBOARD_TOOL = "Distributor Dashboard"


def generate_credentials() -> Credentials:
    # random only; nothing derived from the distributor's identity
    return Credentials(
        username=f"dist_{secrets.token_hex(4)}",
        password=secrets.token_urlsafe(12),
        token=secrets.token_hex(32),
    )


class AccessProvisioner:
    """
    Issues the onboarding grant once a contract is signed.

    - Credentials are generated once and never regenerated.
    - Tools are ordered, course first. They only gain entries: the dashboard is
      appended (and `unlocked` set) once progress reaches 100, never before.
    - `progress` is a cache; every path recomputes it from status + events.
    """

    def __init__(
        self,
        registry: ContractRegistry,
        notifier: InviteNotifier,
        *,
        course_url: str,
        team_chat_url: str,
        dashboard_url: str,
        ttl_days: int = 30,
    ):
        self.registry = registry
        self.notifier = notifier
        self.course_url = course_url
        self.team_chat_url = team_chat_url
        self.dashboard_url = dashboard_url
        self.ttl_days = ttl_days

    def _tools(self, current: List[Tool], pct: int) -> List[Tool]:
        tools = list(current) or [
            Tool(name=COURSE_TOOL, url=self.course_url),
            Tool(name=TEAM_CHAT_TOOL, url=self.team_chat_url),
        ]
        if pct >= MAX_PROGRESS and all(t.name != DASHBOARD_TOOL for t in tools):
            tools.append(Tool(name=DASHBOARD_TOOL, url=self.dashboard_url))
        return tools

    def _recomputed(self, c: Contract) -> Contract:
        if c.access is None:
            return c
        pct = progress(c.status, c.events)
        grant = c.access.model_copy(update={
            "progress": pct,
            "unlocked": c.access.unlocked or pct >= MAX_PROGRESS,
            "tools": self._tools(c.access.tools, pct),
        })
        if grant == c.access:
            return c
        return c.model_copy(update={"access": grant})

    def _new_grant(self, c: Contract) -> AccessGrant:
        now = datetime.now(timezone.utc)
        pct = progress(c.status, c.events)
        return AccessGrant(
            unlocked=pct >= MAX_PROGRESS,
            generated_at=now,
            expires_at=now + timedelta(days=self.ttl_days),
            credentials=generate_credentials(),
            tools=self._tools([], pct),
            progress=pct,
        )

    def refresh(self, contract_id: str) -> Optional[AccessGrant]:
        """Recompute the cached progress of an existing grant (no-op without one)."""
        return self.registry.mutate(contract_id, self._recomputed).access

    def ensure_access(self, contract_id: str) -> AccessGrant:
        contract = self.registry.get(contract_id)
        if contract.status != ContractStatus.signed:
            raise Forbidden("Contract is not signed yet.")
        if contract.access is not None:
            return self.refresh(contract_id)

        # built outside any lock; only the install step is serialized
        candidate = self._new_grant(contract)

        def install(c: Contract) -> Contract:
            if c.access is not None:
                return self._recomputed(c)
            return self._recomputed(c.model_copy(update={"access": candidate}))

        updated = self.registry.mutate(contract_id, install)
        if updated.access.credentials != candidate.credentials:
            # a concurrent caller installed first; theirs is the grant
            return updated.access

        logger.info("access granted", extra={"contract_id": contract_id, "progress": updated.access.progress})
        return self._dispatch_invite(updated)

    def _dispatch_invite(self, contract: Contract) -> AccessGrant:
        sent = self.notifier.send_invite(contract, contract.access)
        if not sent:
            return contract.access

        def mark_sent(c: Contract) -> Contract:
            return c.model_copy(update={"access": c.access.model_copy(update={"invite_sent": True})})

        return self.registry.mutate(contract.id, mark_sent).access
