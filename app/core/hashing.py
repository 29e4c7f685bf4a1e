from __future__ import annotations

import hashlib


def sha256_digest(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def digest_matches(data: bytes, expected_hex: str) -> bool:
    # case-insensitive: externally produced digests are sometimes upper-cased
    return sha256_hex(data) == (expected_hex or "").strip().lower()
