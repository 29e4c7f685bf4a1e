from __future__ import annotations

from typing import Optional

import requests

from app.core.errors import UpstreamError

WELCOME_MESSAGE = (
    "Hi! I can answer questions about your contract, signing, and the onboarding tools. "
    "What would you like to know?"
)


class ChatClient:
    """Text in, text out. Retrieval and generation live in the external assistant service."""

    def __init__(self, base_url: Optional[str], *, timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self._session = session or requests.Session()

    def welcome(self) -> str:
        return WELCOME_MESSAGE

    def ask(self, message: str) -> str:
        if not self.base_url:
            raise UpstreamError("Chat assistant is not configured.")
        try:
            r = self._session.post(f"{self.base_url}/chat", json={"message": message}, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as exc:
            raise UpstreamError(f"Chat assistant unavailable: {exc}") from exc
        reply = (data.get("reply") or data.get("answer")) if isinstance(data, dict) else None
        if not reply:
            raise UpstreamError("Chat assistant returned no reply.")
        return str(reply)
