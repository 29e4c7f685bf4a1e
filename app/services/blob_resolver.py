from __future__ import annotations

import logging
import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Sequence
from urllib.parse import urlparse

import requests
from requests.structures import CaseInsensitiveDict

from app.core.errors import NotFoundError, UpstreamError
from app.models.enums import StorageBackend
from app.schemas.contracts import Locator
from app.services.dropbox_client import DropboxClient, direct_download_url

logger = logging.getLogger(__name__)


@dataclass
class Blob:
    content: bytes
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)

    def __post_init__(self):
        self.headers = CaseInsensitiveDict(self.headers or {})


def is_url(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


def is_shared_link(ref: str) -> bool:
    if not is_url(ref):
        return False
    parsed = urlparse(ref)
    host = (parsed.hostname or "").lower()
    return host.endswith("dropbox.com") and parsed.path.startswith(("/s/", "/scl/"))


def backend_path(locator: Locator) -> Optional[str]:
    if locator.backend != StorageBackend.dropbox:
        return None
    if not is_url(locator.ref):
        return locator.ref
    return locator.path


class HttpFetcher:
    """Plain GET with an explicit timeout."""

    def __init__(self, timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self._session = session or requests.Session()

    def get(self, url: str) -> Blob:
        try:
            r = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamError(f"GET {urlparse(url).hostname} failed: {exc}") from exc
        if r.status_code == 404:
            raise NotFoundError("Remote blob not found.")
        if r.status_code >= 400:
            raise UpstreamError(f"GET {urlparse(url).hostname} returned {r.status_code}")
        return Blob(r.content, r.headers)


# ─────────────────────────────────────────────
# STRATEGIES (tried in list order)
# ─────────────────────────────────────────────


class ResolveStrategy(ABC):
    name = "strategy"

    @abstractmethod
    def applies(self, locator: Locator) -> bool:
        ...

    @abstractmethod
    def fetch(self, locator: Locator) -> Blob:
        ...


class SharedLinkDownload(ResolveStrategy):
    name = "shared_link_download"

    def __init__(self, client: Optional[DropboxClient]):
        self.client = client

    def applies(self, locator: Locator) -> bool:
        return self.client is not None and is_shared_link(locator.ref)

    def fetch(self, locator: Locator) -> Blob:
        content, headers = self.client.shared_link_download(locator.ref)
        return Blob(content, headers)


class SharedLinkTemporaryLink(ResolveStrategy):
    """Shared link -> backend path (metadata lookup) -> short-lived direct URL -> GET."""

    name = "shared_link_temporary_link"

    def __init__(self, client: Optional[DropboxClient], http: HttpFetcher):
        self.client = client
        self.http = http

    def applies(self, locator: Locator) -> bool:
        return self.client is not None and is_shared_link(locator.ref)

    def fetch(self, locator: Locator) -> Blob:
        path = self.client.shared_link_path(locator.ref)
        return self.http.get(self.client.temporary_link(path))


class BackendPathDownload(ResolveStrategy):
    name = "backend_path_download"

    def __init__(self, client: Optional[DropboxClient]):
        self.client = client

    def applies(self, locator: Locator) -> bool:
        return self.client is not None and backend_path(locator) is not None

    def fetch(self, locator: Locator) -> Blob:
        content, headers = self.client.download(backend_path(locator))
        return Blob(content, headers)


class BackendPathTemporaryLink(ResolveStrategy):
    name = "backend_path_temporary_link"

    def __init__(self, client: Optional[DropboxClient], http: HttpFetcher):
        self.client = client
        self.http = http

    def applies(self, locator: Locator) -> bool:
        return self.client is not None and backend_path(locator) is not None

    def fetch(self, locator: Locator) -> Blob:
        return self.http.get(self.client.temporary_link(backend_path(locator)))


class PlainHttpGet(ResolveStrategy):
    name = "http_get"

    def __init__(self, http: HttpFetcher):
        self.http = http

    def applies(self, locator: Locator) -> bool:
        return is_url(locator.ref)

    def fetch(self, locator: Locator) -> Blob:
        url = direct_download_url(locator.ref) if is_shared_link(locator.ref) else locator.ref
        return self.http.get(url)


class LocalFile(ResolveStrategy):
    name = "local_file"

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def applies(self, locator: Locator) -> bool:
        return not is_url(locator.ref)

    def fetch(self, locator: Locator) -> Blob:
        p = (self.root / locator.ref.lstrip("/")).resolve()
        if self.root not in p.parents or not p.is_file():
            raise NotFoundError("Blob not found in local storage.")
        content = p.read_bytes()
        headers = {
            "Content-Type": mimetypes.guess_type(p.name)[0] or "application/octet-stream",
            "Content-Length": str(len(content)),
        }
        return Blob(content, headers)


# ─────────────────────────────────────────────
# RESOLVER
# ─────────────────────────────────────────────


class BlobResolver:
    """
    First non-empty success wins. Intermediate failures are logged and swallowed;
    only when every applicable strategy failed does the caller see an error:
      - NotFoundError if every failure was a not-found (or nothing applied)
      - UpstreamError otherwise (retry-safe)
    """

    def __init__(self, strategies: Sequence[ResolveStrategy]):
        self.strategies: List[ResolveStrategy] = list(strategies)

    @classmethod
    def build(cls, *, client: Optional[DropboxClient], http: HttpFetcher, storage_root: str | Path) -> "BlobResolver":
        return cls([
            SharedLinkDownload(client),
            SharedLinkTemporaryLink(client, http),
            BackendPathDownload(client),
            BackendPathTemporaryLink(client, http),
            PlainHttpGet(http),
            LocalFile(storage_root),
        ])

    def fetch(self, locator: Locator) -> Blob:
        upstream_failures = 0
        for strategy in self.strategies:
            if not strategy.applies(locator):
                continue
            try:
                blob = strategy.fetch(locator)
            except NotFoundError as exc:
                logger.info("strategy found nothing", extra={"strategy": strategy.name, "detail": exc.detail})
                continue
            except Exception as exc:
                upstream_failures += 1
                logger.warning("strategy failed, falling through", extra={"strategy": strategy.name, "error": str(exc)})
                continue
            if not blob.content:
                upstream_failures += 1
                logger.warning("strategy returned empty bytes", extra={"strategy": strategy.name})
                continue
            return blob

        if upstream_failures:
            raise UpstreamError(f"All storage backends failed for {locator.backend.value} blob.")
        raise NotFoundError("Blob not found.")

    def resolve(self, locator: Locator) -> bytes:
        return self.fetch(locator).content
