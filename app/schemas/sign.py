from __future__ import annotations
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field

from app.schemas.contracts import AccessGrant, SignatureRecord


class SignRequest(BaseModel):
    contractId: str = Field(..., min_length=1)
    # older clients send `name` / `signatureDataUrl`
    signerName: str = Field(..., min_length=1, validation_alias=AliasChoices("signerName", "name"))
    signatureImageDataUrl: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("signatureImageDataUrl", "signatureDataUrl"),
    )


class SignResponse(BaseModel):
    signatureRecord: SignatureRecord
    accessGrant: Optional[AccessGrant] = None
