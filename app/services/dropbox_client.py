from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Tuple

import dropbox
import requests
from dropbox.exceptions import ApiError, DropboxException
from dropbox.files import WriteMode

from app.core.errors import NotFoundError, UpstreamError

logger = logging.getLogger(__name__)


def direct_download_url(link: str) -> str:
    """Shared links render a preview page unless dl=1."""
    if "dl=0" in link:
        return link.replace("dl=0", "dl=1")
    if "dl=1" in link:
        return link
    return link + ("&dl=1" if "?" in link else "?dl=1")


def _is_not_found(exc: ApiError) -> bool:
    """Walks the SDK's error union: shared-link-not-found, or path -> LookupError.not_found."""
    err = exc.error
    if getattr(err, "is_shared_link_not_found", None) and err.is_shared_link_not_found():
        return True
    if getattr(err, "is_path", None) and err.is_path():
        lookup = err.get_path()
        return bool(getattr(lookup, "is_not_found", None) and lookup.is_not_found())
    return False


class DropboxClient:
    """
    Thin wrapper over the Dropbox SDK.

    Every call carries the configured timeout. SDK and transport errors surface
    as UpstreamError (lookups that found nothing as NotFoundError), so callers
    in the fallback chains can treat any exception as "try next".
    """

    def __init__(self, token: str, *, timeout: float = 15.0, dbx: Optional[dropbox.Dropbox] = None):
        self.timeout = timeout
        self._dbx = dbx or dropbox.Dropbox(oauth2_access_token=token, timeout=timeout)

    def _call(self, what: str, fn, *args, **kwargs) -> Any:
        try:
            return fn(*args, **kwargs)
        except ApiError as exc:
            if _is_not_found(exc):
                raise NotFoundError(f"Dropbox {what}: not found") from exc
            raise UpstreamError(f"Dropbox {what} failed: {exc.error}") from exc
        except (DropboxException, requests.RequestException) as exc:
            raise UpstreamError(f"Dropbox {what} unavailable: {exc}") from exc

    # ─────────────────────────────────────────────
    # READ
    # ─────────────────────────────────────────────

    def shared_link_download(self, url: str) -> Tuple[bytes, Mapping[str, str]]:
        _, res = self._call("sharing_get_shared_link_file", self._dbx.sharing_get_shared_link_file, url)
        return res.content, res.headers

    def shared_link_path(self, url: str) -> str:
        meta = self._call("sharing_get_shared_link_metadata", self._dbx.sharing_get_shared_link_metadata, url)
        path = getattr(meta, "path_lower", None)
        if not path:
            # links to content outside the token's namespace carry no path
            raise UpstreamError("Shared link metadata has no path.")
        return path

    def temporary_link(self, path: str) -> str:
        res = self._call("files_get_temporary_link", self._dbx.files_get_temporary_link, path)
        if not getattr(res, "link", None):
            raise UpstreamError("Dropbox returned no temporary link.")
        return res.link

    def download(self, path: str) -> Tuple[bytes, Mapping[str, str]]:
        _, res = self._call("files_download", self._dbx.files_download, path)
        return res.content, res.headers

    # ─────────────────────────────────────────────
    # WRITE
    # ─────────────────────────────────────────────

    def upload(self, path: str, data: bytes) -> str:
        meta = self._call(
            "files_upload",
            self._dbx.files_upload,
            data,
            path,
            mode=WriteMode.overwrite,
            autorename=False,
            mute=True,
        )
        return getattr(meta, "path_lower", None) or path

    def shared_link(self, path: str) -> Optional[str]:
        """Creates a shared link, or reuses an existing one (creation fails when one exists)."""
        try:
            meta = self._call(
                "sharing_create_shared_link_with_settings",
                self._dbx.sharing_create_shared_link_with_settings,
                path,
            )
            url = meta.url
        except UpstreamError:
            logger.info("shared link exists or cannot be created, listing", extra={"path": path})
            res = self._call("sharing_list_shared_links", self._dbx.sharing_list_shared_links, path=path, direct_only=True)
            url = res.links[0].url if res.links else None
        return direct_download_url(url) if url else None
