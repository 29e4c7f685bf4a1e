"""Check a signed contract against its signature record, offline.

Usage:
  python -m app.verify_signature signed.pdf record.json
  python -m app.verify_signature signed.pdf record.json --public-key keys/ecdsa_public.pem

`record.json` is either a signature record or a whole contract (its `signature` is used).

Exit codes:
  0  digest matches and the signature is valid
  3  a file could not be read or the record is malformed
  5  the document digest does not match the record
  7  the signature does not verify under the public key
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from app.core.hashing import digest_matches, sha256_hex
from app.core.signing import PUBLIC_KEY_FILE, load_public_key, verify_digest
from app.schemas.contracts import SignatureRecord

EXIT_OK = 0
EXIT_UNREADABLE = 3
EXIT_DIGEST_MISMATCH = 5
EXIT_BAD_SIGNATURE = 7


def load_record(path: Path) -> SignatureRecord:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict) and isinstance(raw.get("signature"), dict):
        raw = raw["signature"]
    return SignatureRecord.model_validate(raw)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Verify a signed contract PDF against its signature record")
    ap.add_argument("document", type=Path, help="Signed PDF")
    ap.add_argument("record", type=Path, help="Signature record (or contract) JSON")
    ap.add_argument(
        "--public-key",
        type=Path,
        default=Path("keys") / PUBLIC_KEY_FILE,
        help="PEM public key (default: keys/%s)" % PUBLIC_KEY_FILE,
    )
    args = ap.parse_args(argv)

    try:
        data = args.document.read_bytes()
        record = load_record(args.record)
        public_key = load_public_key(args.public_key.read_bytes())
    except (OSError, ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        print(f"error: {e}", file=sys.stderr)
        return EXIT_UNREADABLE

    if not digest_matches(data, record.content_digest):
        print(f"digest mismatch: document {sha256_hex(data)} != record {record.content_digest}")
        return EXIT_DIGEST_MISMATCH

    if not verify_digest(public_key, record.content_digest, record.detached_signature):
        print("signature invalid")
        return EXIT_BAD_SIGNATURE

    print(f"ok: signed by {record.signer_name} at {record.signed_at.isoformat()} ({record.algorithm})")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
