from __future__ import annotations

import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

from app.core.errors import UpstreamError
from app.models.enums import StorageBackend
from app.schemas.contracts import Locator
from app.services.dropbox_client import DropboxClient

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_name(name: str) -> str:
    cleaned = _UNSAFE.sub("_", os.path.basename(name or "")).strip("._")
    return cleaned or "document.pdf"


class WriteStrategy(ABC):
    name = "write"

    @abstractmethod
    def available(self) -> bool:
        ...

    @abstractmethod
    def write(self, name: str, data: bytes) -> Locator:
        ...


class DropboxWrite(WriteStrategy):
    """
    Upload with overwrite semantics, then mint a shared link.
    A failed link leaves the raw backend path as the locator ref.
    """

    name = "dropbox"

    def __init__(self, client: Optional[DropboxClient], folder: str = "/contracts"):
        self.client = client
        self.folder = "/" + folder.strip("/") if folder.strip("/") else ""

    def available(self) -> bool:
        return self.client is not None

    def write(self, name: str, data: bytes) -> Locator:
        path = self.client.upload(f"{self.folder}/{name}", data)
        try:
            link = self.client.shared_link(path)
        except Exception as exc:
            logger.warning("shared link creation failed, keeping backend path", extra={"path": path, "error": str(exc)})
            link = None
        if link:
            return Locator(backend=StorageBackend.dropbox, ref=link, path=path)
        return Locator(backend=StorageBackend.dropbox, ref=path)


class LocalWrite(WriteStrategy):
    name = "local"

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def available(self) -> bool:
        return True

    def write(self, name: str, data: bytes) -> Locator:
        self.root.mkdir(parents=True, exist_ok=True)
        dest = self.root / name
        # write-then-rename so a retry never observes a torn file
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, dest)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        return Locator(backend=StorageBackend.local, ref=name)


class BlobWriter:
    """
    Primary backend first (skipped when unconfigured); on failure the next one.
    Idempotent under the same name: every backend overwrites.
    """

    def __init__(self, strategies: Sequence[WriteStrategy]):
        self.strategies: List[WriteStrategy] = list(strategies)

    @classmethod
    def build(cls, *, client: Optional[DropboxClient], folder: str, storage_root: str | Path) -> "BlobWriter":
        return cls([DropboxWrite(client, folder), LocalWrite(storage_root)])

    def write(self, name: str, data: bytes) -> Locator:
        name = safe_name(name)
        for strategy in self.strategies:
            if not strategy.available():
                continue
            try:
                locator = strategy.write(name, data)
            except Exception as exc:
                logger.warning("blob write failed, trying next backend", extra={"backend": strategy.name, "error": str(exc)})
                continue
            logger.info("blob stored", extra={"backend": strategy.name, "blob_name": name, "size": len(data)})
            return locator
        raise UpstreamError("All storage backends failed to store the blob.")
