from __future__ import annotations

from app.models.enums import ContractStatus
from app.schemas.contracts import ContractEvents

SIGNED_WEIGHT = 30
SLACK_VISITED_WEIGHT = 10
NOTION_COMPLETED_WEIGHT = 60
MAX_PROGRESS = 100


def progress(status: ContractStatus | str, events: ContractEvents | None) -> int:
    """
    Onboarding progress 0..100.

    Pure and commutative: only the current flags matter, not the order they arrived in.
    A pending contract still earns its event points, it only lacks the signing component.
    """
    events = events or ContractEvents()
    total = 0
    if ContractStatus(status) == ContractStatus.signed:
        total += SIGNED_WEIGHT
    if events.slack_visited:
        total += SLACK_VISITED_WEIGHT
    if events.notion_completed:
        total += NOTION_COMPLETED_WEIGHT
    return min(total, MAX_PROGRESS)
