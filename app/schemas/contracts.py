from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.enums import ContractStatus, StorageBackend


class DomainModel(BaseModel):
    # snake_case in Python, camelCase on the wire and in persisted JSON
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Locator(DomainModel):
    """
    Opaque storage reference. Only BlobResolver interprets it.
    `ref` is a shared link, a backend path, an absolute URL or a path relative to the local storage root.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    backend: StorageBackend
    ref: str
    path: Optional[str] = None

    @property
    def public_url(self) -> Optional[str]:
        if self.ref.startswith(("http://", "https://")):
            return self.ref
        return None


class SignatureRecord(DomainModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    signer_name: str
    signed_at: datetime
    content_digest: str
    detached_signature: str
    algorithm: str
    locator: Optional[Locator] = None


class ContractEvents(DomainModel):
    slack_visited: bool = False
    notion_completed: bool = False


class Tool(DomainModel):
    name: str
    url: str


class Credentials(DomainModel):
    username: str
    password: str
    token: str


class AccessGrant(DomainModel):
    unlocked: bool = False
    generated_at: datetime
    expires_at: Optional[datetime] = None
    credentials: Credentials
    tools: List[Tool] = Field(default_factory=list)
    progress: int = Field(0, ge=0, le=100)
    invite_sent: bool = False


class Contract(DomainModel):
    id: str
    vendor_id: Optional[str] = None
    vendor_email: Optional[str] = None
    assigned_to_email: str
    original_name: str
    locator: Locator
    status: ContractStatus = ContractStatus.pending
    created_at: datetime
    signed_at: Optional[datetime] = None
    signature: Optional[SignatureRecord] = None
    events: ContractEvents = Field(default_factory=ContractEvents)
    access: Optional[AccessGrant] = None

    # compare-and-swap guard, bumped on every committed mutation
    version: int = 0


class UploadResponse(BaseModel):
    id: str
    publicUrl: Optional[str] = None
    contract: Contract


class VerificationResponse(BaseModel):
    contractId: str
    digestMatches: bool
    signatureValid: bool
    computedDigest: str
    recordedDigest: str
