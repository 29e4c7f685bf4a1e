import threading

import pytest

from app.core.errors import ConflictError, Forbidden, InvalidDocumentError, NotFoundError, UpstreamError
from app.models.enums import ContractEvent, ContractStatus
from app.services.access_provisioner import COURSE_TOOL, DASHBOARD_TOOL
from app.services.progress_engine import progress
from app.tests.factories import data_url, make_image, make_pdf

DISTRIBUTOR = "dist@example.com"
VENDOR = "vendor@example.com"


def upload(svc, name="offer.pdf"):
    return svc.upload(
        data=make_pdf(),
        original_name=name,
        assigned_to_email=DISTRIBUTOR,
        vendor_id="vendor-1",
        vendor_email=VENDOR,
    )


def sign(svc, contract_id, name="Dana Distributor"):
    return svc.sign(contract_id, signer_name=name, signature_data_url=data_url(make_image("PNG")))


class BlockingWriter:
    """Parks the signed-artifact write until released."""

    def __init__(self, inner):
        self.inner = inner
        self.entered = threading.Event()
        self.release = threading.Event()

    def write(self, name, data):
        if "-signed-" in name:
            self.entered.set()
            self.release.wait(10)
        return self.inner.write(name, data)


class FailingSignedWriter:
    def __init__(self, inner):
        self.inner = inner

    def write(self, name, data):
        if "-signed-" in name:
            raise UpstreamError("All storage backends failed to store the blob.")
        return self.inner.write(name, data)


# ─────────────────────────────────────────────
# UPLOAD
# ─────────────────────────────────────────────


def test_upload_creates_pending_contract(contract_service):
    c = upload(contract_service)

    assert c.status == ContractStatus.pending
    assert c.assigned_to_email == DISTRIBUTOR
    assert c.signed_at is None and c.signature is None and c.access is None
    assert contract_service.get(c.id) == c


@pytest.mark.parametrize("data", [b"", b"plain text, not a pdf"])
def test_upload_rejects_non_pdf(contract_service, data):
    with pytest.raises(InvalidDocumentError):
        contract_service.upload(
            data=data, original_name="x.pdf", assigned_to_email=DISTRIBUTOR, vendor_id=None, vendor_email=None,
        )


def test_upload_requires_distributor_email(contract_service):
    with pytest.raises(InvalidDocumentError):
        contract_service.upload(
            data=make_pdf(), original_name="x.pdf", assigned_to_email="nobody", vendor_id=None, vendor_email=None,
        )


def test_list_filters_by_vendor_and_assignee(contract_service):
    a = upload(contract_service, "a.pdf")
    contract_service.upload(
        data=make_pdf(), original_name="b.pdf", assigned_to_email="other@example.com",
        vendor_id="vendor-2", vendor_email="v2@example.com",
    )

    assert [c.id for c in contract_service.list(vendor=VENDOR)] == [a.id]
    assert [c.id for c in contract_service.list(vendor="VENDOR-1")] == [a.id]
    assert [c.id for c in contract_service.list(assigned_to=DISTRIBUTOR)] == [a.id]
    assert len(contract_service.list()) == 2


def test_unknown_contract_is_not_found(contract_service):
    with pytest.raises(NotFoundError):
        contract_service.get("missing")


# ─────────────────────────────────────────────
# SIGN
# ─────────────────────────────────────────────


def test_sign_transitions_once_and_grants_access(contract_service, notifier):
    c = upload(contract_service)

    record, grant = sign(contract_service, c.id)
    stored = contract_service.get(c.id)

    assert stored.status == ContractStatus.signed
    assert stored.signed_at == record.signed_at
    assert stored.signature == record
    assert record.locator is not None

    assert grant.progress == 30
    assert grant.unlocked is False
    assert grant.tools[0].name == COURSE_TOOL
    assert all(t.name != DASHBOARD_TOOL for t in grant.tools)
    assert grant.invite_sent is True
    assert notifier.sent == [c.id]

    with pytest.raises(ConflictError):
        sign(contract_service, c.id)


def test_signed_file_is_served_by_default_original_on_request(contract_service):
    c = upload(contract_service)
    record, _ = sign(contract_service, c.id)

    signed_blob, signed_name = contract_service.file(c.id)
    original_blob, original_name = contract_service.file(c.id, original=True)

    assert signed_name == f"{c.id}-signed.pdf"
    assert original_name == "offer.pdf"
    assert signed_blob.content != original_blob.content

    result = contract_service.verify(c.id)
    assert result["digestMatches"] is True
    assert result["signatureValid"] is True
    assert result["computedDigest"] == record.content_digest


def test_verify_detects_tampered_artifact(contract_service, settings):
    from pathlib import Path

    c = upload(contract_service)
    record, _ = sign(contract_service, c.id)
    stored = Path(settings.storage_root) / record.locator.ref
    stored.write_bytes(stored.read_bytes() + b"\n% appended")

    result = contract_service.verify(c.id)
    assert result["digestMatches"] is False
    assert result["signatureValid"] is True


def test_verify_unsigned_is_forbidden(contract_service):
    c = upload(contract_service)
    with pytest.raises(Forbidden):
        contract_service.verify(c.id)


def test_failed_signed_write_leaves_contract_pending(contract_service):
    c = upload(contract_service)
    real_writer = contract_service.writer
    contract_service.writer = FailingSignedWriter(real_writer)

    with pytest.raises(UpstreamError):
        sign(contract_service, c.id)

    stored = contract_service.get(c.id)
    assert stored.status == ContractStatus.pending
    assert stored.signature is None and stored.access is None

    # the claim was released, a retry goes through
    contract_service.writer = real_writer
    record, _ = sign(contract_service, c.id)
    assert contract_service.get(c.id).signature == record


def test_bad_signature_image_leaves_contract_pending(contract_service):
    c = upload(contract_service)
    with pytest.raises(InvalidDocumentError):
        contract_service.sign(c.id, signer_name="X", signature_data_url="data:image/png;base64,aGVsbG8=")
    assert contract_service.get(c.id).status == ContractStatus.pending


def test_concurrent_sign_is_rejected_while_first_is_in_flight(contract_service):
    c = upload(contract_service)
    blocking = BlockingWriter(contract_service.writer)
    contract_service.writer = blocking

    results = {}

    def first():
        results["first"] = sign(contract_service, c.id, name="First Signer")

    t = threading.Thread(target=first)
    t.start()
    assert blocking.entered.wait(10)

    try:
        with pytest.raises(ConflictError):
            sign(contract_service, c.id, name="Second Signer")
    finally:
        blocking.release.set()
        t.join(10)

    record, _ = results["first"]
    stored = contract_service.get(c.id)
    assert stored.status == ContractStatus.signed
    assert stored.signature.signer_name == "First Signer"
    assert record == stored.signature


def test_different_contracts_sign_in_parallel(contract_service):
    a = upload(contract_service, "a.pdf")
    b = upload(contract_service, "b.pdf")
    blocking = BlockingWriter(contract_service.writer)
    contract_service.writer = blocking

    t = threading.Thread(target=sign, args=(contract_service, a.id))
    t.start()
    assert blocking.entered.wait(10)

    # b is not held up by a's in-flight write
    contract_service.writer = blocking.inner
    sign(contract_service, b.id)
    blocking.release.set()
    t.join(10)

    assert contract_service.get(a.id).status == ContractStatus.signed
    assert contract_service.get(b.id).status == ContractStatus.signed


# ─────────────────────────────────────────────
# ACCESS / EVENTS
# ─────────────────────────────────────────────


def test_access_before_signing_is_forbidden(contract_service):
    c = upload(contract_service)
    with pytest.raises(Forbidden):
        contract_service.access(c.id)


def test_access_is_idempotent(contract_service, notifier):
    c = upload(contract_service)
    _, grant = sign(contract_service, c.id)

    again = contract_service.access(c.id)
    third = contract_service.access(c.id)

    assert again.credentials == grant.credentials == third.credentials
    assert again.generated_at == grant.generated_at
    assert notifier.sent == [c.id]


def test_invite_failure_is_recorded_not_raised(settings):
    from app.core.deps import build_services
    from app.tests.factories import FakeHttp, FakeNotifier

    svc = build_services(settings, http=FakeHttp(), notifier=FakeNotifier(ok=False)).contracts
    c = upload(svc)
    _, grant = sign(svc, c.id)

    assert grant.invite_sent is False
    assert svc.get(c.id).access.invite_sent is False


def test_events_before_signing_count_without_signing_points(contract_service):
    c = upload(contract_service)
    events, pct = contract_service.record_event(c.id, ContractEvent.slack_visited)
    assert events.slack_visited is True
    assert pct == 10
    assert contract_service.get(c.id).access is None


def test_events_are_idempotent_and_unlock_dashboard_at_100(contract_service):
    c = upload(contract_service)
    sign(contract_service, c.id)

    _, pct = contract_service.record_event(c.id, ContractEvent.slack_visited)
    assert pct == 40
    _, pct = contract_service.record_event(c.id, ContractEvent.slack_visited)
    assert pct == 40
    assert contract_service.get(c.id).access.progress == 40

    _, pct = contract_service.record_event(c.id, ContractEvent.notion_completed)
    assert pct == 100

    grant = contract_service.access(c.id)
    assert grant.unlocked is True
    assert grant.progress == 100
    assert [t.name for t in grant.tools][0] == COURSE_TOOL
    assert grant.tools[-1].name == DASHBOARD_TOOL


def test_cached_progress_always_matches_recompute(contract_service):
    c = upload(contract_service)
    sign(contract_service, c.id)
    for event in (ContractEvent.notion_completed, ContractEvent.slack_visited):
        contract_service.record_event(c.id, event)
        stored = contract_service.get(c.id)
        assert stored.access.progress == progress(stored.status, stored.events)


def test_racing_event_postings_do_not_lose_updates(contract_service):
    c = upload(contract_service)
    sign(contract_service, c.id)
    barrier = threading.Barrier(2)

    def post(event):
        barrier.wait(5)
        contract_service.record_event(c.id, event)

    threads = [
        threading.Thread(target=post, args=(ContractEvent.slack_visited,)),
        threading.Thread(target=post, args=(ContractEvent.notion_completed,)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)

    stored = contract_service.get(c.id)
    assert stored.events.slack_visited and stored.events.notion_completed
    assert contract_service.access(c.id).progress == 100


# ─────────────────────────────────────────────
# NUDGES / STATS
# ─────────────────────────────────────────────


def test_nudges_are_listed_newest_first_and_marked_read(contract_service):
    c = upload(contract_service)
    first = contract_service.nudge(c.id, sender=VENDOR)
    second = contract_service.nudge(c.id, sender=VENDOR, message="Please sign today")

    assert "waiting for your signature" in first.message
    inbox = contract_service.notifications_for(DISTRIBUTOR.upper())
    assert [n.id for n in inbox] == [second.id, first.id]

    assert contract_service.mark_read([first.id, "unknown"]) == 1
    assert contract_service.mark_read([first.id]) == 0
    assert {n.id: n.read for n in contract_service.notifications_for(DISTRIBUTOR)} == {
        first.id: True,
        second.id: False,
    }


def test_stats_count_signed_and_onboarded(contract_service):
    a = upload(contract_service, "a.pdf")
    upload(contract_service, "b.pdf")
    sign(contract_service, a.id)
    contract_service.record_event(a.id, ContractEvent.slack_visited)
    contract_service.record_event(a.id, ContractEvent.notion_completed)

    stats = contract_service.stats()

    assert stats["total"] == 2
    assert stats["signed"] == 1
    assert stats["onboarded"] == 1
    assert stats["byVendor"][VENDOR] == {"total": 2, "signed": 1, "onboarded": 1}
    assert [c.id for c in stats["recent"]] == [a.id]
