from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from app.core.errors import InvalidDocumentError
from app.core.hashing import sha256_digest
from app.core.signing import SIGNATURE_ALGORITHM, KeyStore
from app.schemas.contracts import SignatureRecord

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:image/(?:png|jpe?g);base64,", re.IGNORECASE)

LABEL_FONT_NAME = "SignatureLabel"
FALLBACK_FONT = "Helvetica"


@dataclass(frozen=True)
class SignatureAnchor:
    """Fixed placement on the last page, PDF points from the bottom-left corner."""
    x: float = 50.0
    y: float = 80.0
    width: float = 200.0
    height: float = 80.0
    label_gap: float = 10.0
    name_gap: float = 22.0
    label_size: int = 8
    name_size: int = 10


def decode_data_url(data_url: str) -> bytes:
    """`data:image/png;base64,...` (or a bare base64 payload) -> raw image bytes."""
    payload = _DATA_URL.sub("", (data_url or "").strip(), count=1)
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidDocumentError("Signature image is not valid base64.")
    if not raw:
        raise InvalidDocumentError("Signature image is empty.")
    return raw


def load_signature_image(data: bytes) -> Image.Image:
    # PNG first (canvas exports), then JPEG
    for fmt in ("PNG", "JPEG"):
        try:
            img = Image.open(BytesIO(data), formats=[fmt])
            img.load()
            return img.convert("RGBA")
        except (UnidentifiedImageError, OSError, SyntaxError):
            continue
    raise InvalidDocumentError("Signature image is neither PNG nor JPEG.")


class DocumentSigner:
    def __init__(self, key_store: KeyStore, *, anchor: Optional[SignatureAnchor] = None, font_path: Optional[str] = None):
        self.key_store = key_store
        self.anchor = anchor or SignatureAnchor()
        self.font_path = font_path

    def _label_font(self) -> str:
        """Registered label font name; raises if the configured font cannot be embedded."""
        if not self.font_path:
            return FALLBACK_FONT
        if LABEL_FONT_NAME not in pdfmetrics.getRegisteredFontNames():
            pdfmetrics.registerFont(TTFont(LABEL_FONT_NAME, self.font_path))
        return LABEL_FONT_NAME

    def _overlay(self, page_w: float, page_h: float, image: Image.Image, signer_name: str) -> bytes:
        a = self.anchor
        buf = BytesIO()
        c = canvas.Canvas(buf, pagesize=(page_w, page_h))
        c.drawImage(ImageReader(image), a.x, a.y, width=a.width, height=a.height, mask="auto")

        c.setFillColorRGB(0, 0, 0)
        try:
            c.setFont(self._label_font(), a.label_size)
            c.drawString(a.x, a.y - a.label_gap, "Signature")
        except Exception as exc:
            # the name is what matters; a missing font only costs the label
            logger.warning("label font unavailable, drawing name only", extra={"font_path": self.font_path, "error": str(exc)})
        c.setFont(FALLBACK_FONT, a.name_size)
        c.drawString(a.x, a.y - a.name_gap, signer_name)

        c.save()
        return buf.getvalue()

    def render(self, original: bytes, signer_name: str, image_bytes: bytes) -> bytes:
        try:
            reader = PdfReader(BytesIO(original))
            page_count = len(reader.pages)
            writer = PdfWriter(clone_from=reader) if page_count else None
        except (PdfReadError, ValueError, KeyError, TypeError) as exc:
            raise InvalidDocumentError(f"Contract is not a readable PDF: {exc}")
        if page_count == 0:
            raise InvalidDocumentError("Contract PDF has no pages.")

        image = load_signature_image(image_bytes)

        # merge onto the writer-owned copy of the last page
        last = writer.pages[-1]
        box = last.mediabox
        overlay = self._overlay(float(box.width), float(box.height), image, signer_name)
        last.merge_page(PdfReader(BytesIO(overlay)).pages[0])

        out = BytesIO()
        writer.write(out)
        return out.getvalue()

    def sign(self, original: bytes, signer_name: str, image_bytes: bytes) -> Tuple[bytes, SignatureRecord]:
        """
        Returns (signed_bytes, record). The record's locator is unset until the
        bytes are stored; digest and signature cover exactly `signed_bytes`.
        """
        signer_name = signer_name.strip()
        if not signer_name:
            raise InvalidDocumentError("Signer name is required.")

        signed = self.render(original, signer_name, image_bytes)
        digest = sha256_digest(signed)
        record = SignatureRecord(
            signer_name=signer_name,
            signed_at=datetime.now(timezone.utc),
            content_digest=digest.hex(),
            detached_signature=self.key_store.sign_digest(digest),
            algorithm=SIGNATURE_ALGORITHM,
        )
        return signed, record
