#app/models/enums.py
from __future__ import annotations
from enum import Enum


class UserRole(str, Enum):
    vendor = "vendor"
    distributor = "distributor"


class ContractStatus(str, Enum):
    # one-way: pending -> signed
    pending = "pending"
    signed = "signed"


class ContractEvent(str, Enum):
    slack_visited = "slack_visited"
    notion_completed = "notion_completed"


class StorageBackend(str, Enum):
    dropbox = "dropbox"
    local = "local"
