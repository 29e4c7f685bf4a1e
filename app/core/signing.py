from __future__ import annotations

import base64
import logging
import threading
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

logger = logging.getLogger(__name__)

SIGNATURE_ALGORITHM = "ECDSA-P256-SHA256"

PRIVATE_KEY_FILE = "ecdsa_private.pem"
PUBLIC_KEY_FILE = "ecdsa_public.pem"


class KeyStore:
    """
    Owns the ECDSA P-256 signing keypair.

    - Generated once (PEM, PKCS8 private / SPKI public) when absent, reused afterwards.
    - The private key never leaves this object: callers get `sign_digest()` and
      the public key, nothing else.
    """

    def __init__(self, keys_dir: str | Path):
        self._dir = Path(keys_dir)
        self._lock = threading.Lock()
        self._private_key: Optional[ec.EllipticCurvePrivateKey] = None

    @property
    def private_key_path(self) -> Path:
        return self._dir / PRIVATE_KEY_FILE

    @property
    def public_key_path(self) -> Path:
        return self._dir / PUBLIC_KEY_FILE

    def ensure_keys(self) -> None:
        with self._lock:
            if self.private_key_path.exists() and self.public_key_path.exists():
                return
            self._dir.mkdir(parents=True, exist_ok=True)
            key = ec.generate_private_key(ec.SECP256R1())
            self.private_key_path.write_bytes(
                key.private_bytes(
                    encoding=serialization.Encoding.PEM,
                    format=serialization.PrivateFormat.PKCS8,
                    encryption_algorithm=serialization.NoEncryption(),
                )
            )
            self.public_key_path.write_bytes(
                key.public_key().public_bytes(
                    encoding=serialization.Encoding.PEM,
                    format=serialization.PublicFormat.SubjectPublicKeyInfo,
                )
            )
            self._private_key = key
            logger.info("generated ECDSA P-256 keypair", extra={"keys_dir": str(self._dir)})

    def _load_private_key(self) -> ec.EllipticCurvePrivateKey:
        if self._private_key is None:
            self.ensure_keys()
            with self._lock:
                if self._private_key is None:
                    key = serialization.load_pem_private_key(self.private_key_path.read_bytes(), password=None)
                    if not isinstance(key, ec.EllipticCurvePrivateKey):
                        raise RuntimeError("Signing key is not an EC private key.")
                    self._private_key = key
        return self._private_key

    def public_key(self) -> ec.EllipticCurvePublicKey:
        return self._load_private_key().public_key()

    def public_key_pem(self) -> str:
        return self.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

    def sign_digest(self, digest: bytes) -> str:
        """
        Signs the raw 32 digest bytes (ECDSA with SHA-256 over them).
        Returns base64 DER.
        """
        if len(digest) != 32:
            raise ValueError("Expected a raw 32-byte SHA-256 digest.")
        sig = self._load_private_key().sign(digest, ec.ECDSA(hashes.SHA256()))
        return base64.b64encode(sig).decode("ascii")


def load_public_key(pem: str | bytes) -> ec.EllipticCurvePublicKey:
    raw = pem.encode("ascii") if isinstance(pem, str) else pem
    key = serialization.load_pem_public_key(raw)
    if not isinstance(key, ec.EllipticCurvePublicKey):
        raise ValueError("Not an EC public key.")
    return key


def verify_digest(public_key: ec.EllipticCurvePublicKey, digest_hex: str, signature_b64: str) -> bool:
    """
    True iff `signature_b64` is a valid signature over the raw bytes of `digest_hex`.
    """
    try:
        digest = bytes.fromhex(digest_hex)
        sig = base64.b64decode(signature_b64, validate=True)
    except ValueError:
        return False
    try:
        public_key.verify(sig, digest, ec.ECDSA(hashes.SHA256()))
    except InvalidSignature:
        return False
    return True
