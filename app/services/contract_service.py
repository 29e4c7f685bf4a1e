from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from app.core.errors import ConflictError, Forbidden, InvalidDocumentError
from app.core.hashing import sha256_hex
from app.core.signing import KeyStore, verify_digest
from app.models.enums import ContractEvent, ContractStatus
from app.schemas.contracts import AccessGrant, Contract, ContractEvents, SignatureRecord
from app.schemas.notifications import Notification
from app.services.access_provisioner import AccessProvisioner
from app.services.blob_resolver import Blob, BlobResolver
from app.services.blob_writer import BlobWriter, safe_name
from app.services.contract_registry import ContractRegistry
from app.services.document_signer import DocumentSigner, decode_data_url
from app.services.notification_store import NotificationStore, new_notification
from app.services.progress_engine import MAX_PROGRESS, progress

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"

_EVENT_FIELDS = {
    ContractEvent.slack_visited: "slack_visited",
    ContractEvent.notion_completed: "notion_completed",
}


class ContractService:
    """
    Contract lifecycle: upload -> pending -> sign -> signed, plus engagement events.

    The pending -> signed transition commits only after the signed bytes are stored;
    a failure anywhere before that leaves the contract pending.
    """

    def __init__(
        self,
        *,
        registry: ContractRegistry,
        resolver: BlobResolver,
        writer: BlobWriter,
        signer: DocumentSigner,
        provisioner: AccessProvisioner,
        notifications: NotificationStore,
        key_store: KeyStore,
    ):
        self.registry = registry
        self.resolver = resolver
        self.writer = writer
        self.signer = signer
        self.provisioner = provisioner
        self.notifications = notifications
        self.key_store = key_store

    # ─────────────────────────────────────────────
    # UPLOAD / READ
    # ─────────────────────────────────────────────

    def upload(
        self,
        *,
        data: bytes,
        original_name: str,
        assigned_to_email: str,
        vendor_id: Optional[str],
        vendor_email: Optional[str],
    ) -> Contract:
        if not data:
            raise InvalidDocumentError("Uploaded file is empty.")
        if PDF_MAGIC not in data[:1024]:
            raise InvalidDocumentError("Uploaded file is not a PDF.")
        assigned = (assigned_to_email or "").strip().lower()
        if "@" not in assigned:
            raise InvalidDocumentError("A valid distributor email is required.")

        contract_id = self.registry.new_id()
        locator = self.writer.write(f"{contract_id}-{safe_name(original_name)}", data)
        return self.registry.create(
            contract_id=contract_id,
            locator=locator,
            original_name=original_name or "contract.pdf",
            assigned_to_email=assigned,
            vendor_id=vendor_id,
            vendor_email=(vendor_email or "").strip().lower() or None,
        )

    def get(self, contract_id: str) -> Contract:
        return self.registry.get(contract_id)

    def list(self, *, vendor: Optional[str] = None, assigned_to: Optional[str] = None) -> List[Contract]:
        return self.registry.list(vendor=vendor, assigned_to=assigned_to)

    def file(self, contract_id: str, *, original: bool = False) -> Tuple[Blob, str]:
        """Resolved bytes plus a download filename. Signed artifact wins unless `original`."""
        c = self.registry.get(contract_id)
        if not original and c.signature is not None and c.signature.locator is not None:
            return self.resolver.fetch(c.signature.locator), f"{c.id}-signed.pdf"
        return self.resolver.fetch(c.locator), safe_name(c.original_name)

    # ─────────────────────────────────────────────
    # SIGN
    # ─────────────────────────────────────────────

    def sign(self, contract_id: str, *, signer_name: str, signature_data_url: str) -> Tuple[SignatureRecord, Optional[AccessGrant]]:
        image = decode_data_url(signature_data_url)

        with self.registry.signing_claim(contract_id) as contract:
            original = self.resolver.resolve(contract.locator)
            signed_bytes, record = self.signer.sign(original, signer_name, image)
            # one name per attempt: a signer that loses the commit never overwrites committed bytes
            locator = self.writer.write(f"{contract_id}-signed-{record.content_digest[:16]}.pdf", signed_bytes)
            record = record.model_copy(update={"locator": locator})

            def commit(c: Contract) -> Contract:
                if c.status == ContractStatus.signed:
                    raise ConflictError("Contract is already signed.")
                return c.model_copy(update={
                    "status": ContractStatus.signed,
                    "signed_at": record.signed_at,
                    "signature": record,
                })

            self.registry.mutate(contract_id, commit)

        logger.info("contract signed", extra={"contract_id": contract_id, "digest": record.content_digest})
        grant = self.provisioner.ensure_access(contract_id)
        return record, grant

    def verify(self, contract_id: str) -> Dict[str, object]:
        c = self.registry.get(contract_id)
        if c.signature is None or c.signature.locator is None:
            raise Forbidden("Contract is not signed yet.")
        data = self.resolver.resolve(c.signature.locator)
        computed = sha256_hex(data)
        return {
            "contractId": c.id,
            "digestMatches": computed == c.signature.content_digest,
            "signatureValid": verify_digest(
                self.key_store.public_key(), c.signature.content_digest, c.signature.detached_signature
            ),
            "computedDigest": computed,
            "recordedDigest": c.signature.content_digest,
        }

    # ─────────────────────────────────────────────
    # ENGAGEMENT / ACCESS
    # ─────────────────────────────────────────────

    def record_event(self, contract_id: str, event: ContractEvent) -> Tuple[ContractEvents, int]:
        field = _EVENT_FIELDS[ContractEvent(event)]

        def set_flag(c: Contract) -> Contract:
            if getattr(c.events, field):
                return c
            return c.model_copy(update={"events": c.events.model_copy(update={field: True})})

        updated = self.registry.mutate(contract_id, set_flag)
        if updated.access is not None:
            self.provisioner.refresh(contract_id)
        return updated.events, progress(updated.status, updated.events)

    def access(self, contract_id: str) -> AccessGrant:
        return self.provisioner.ensure_access(contract_id)

    # ─────────────────────────────────────────────
    # NUDGES
    # ─────────────────────────────────────────────

    def default_nudge_message(self, c: Contract) -> str:
        if c.status == ContractStatus.pending:
            return f"Reminder: \"{c.original_name}\" is waiting for your signature."
        pct = progress(c.status, c.events)
        if pct >= MAX_PROGRESS:
            return f"Thanks for completing onboarding for \"{c.original_name}\"!"
        return f"Your onboarding for \"{c.original_name}\" is {pct}% complete. Keep going!"

    def nudge(self, contract_id: str, *, sender: str, message: Optional[str] = None) -> Notification:
        c = self.registry.get(contract_id)
        text = (message or "").strip() or self.default_nudge_message(c)
        return self.notifications.append(new_notification(
            contract_id=c.id,
            sender=sender.strip().lower(),
            recipient=c.assigned_to_email.lower(),
            message=text,
        ))

    def notifications_for(self, email: str) -> List[Notification]:
        return self.notifications.list_for(email)

    def mark_read(self, ids: List[str]) -> int:
        return self.notifications.mark_read(ids)

    # ─────────────────────────────────────────────
    # STATS
    # ─────────────────────────────────────────────

    def stats(self, *, recent_limit: int = 5) -> Dict[str, object]:
        rows = self.registry.list()
        by_vendor: Dict[str, Dict[str, int]] = {}
        onboarded_rows: List[Contract] = []
        signed = 0
        for c in rows:
            vendor = c.vendor_email or c.vendor_id or "unknown"
            bucket = by_vendor.setdefault(vendor, {"total": 0, "signed": 0, "onboarded": 0})
            bucket["total"] += 1
            if c.status == ContractStatus.signed:
                signed += 1
                bucket["signed"] += 1
            if c.access is not None and progress(c.status, c.events) >= MAX_PROGRESS:
                bucket["onboarded"] += 1
                onboarded_rows.append(c)

        onboarded_rows.sort(key=lambda c: c.signed_at or c.created_at, reverse=True)
        return {
            "total": len(rows),
            "signed": signed,
            "onboarded": len(onboarded_rows),
            "byVendor": by_vendor,
            "recent": onboarded_rows[:recent_limit],
        }
