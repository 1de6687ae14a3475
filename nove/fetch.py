"""Payload fetching over HTTP for the audio cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import requests

import config

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "audio/mpeg"


class FetchError(Exception):
    """Raised when a payload cannot be retrieved.  Callers treat it as opaque."""


@dataclass(frozen=True)
class FetchedPayload:
    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE


class PayloadFetcher:
    """Retrieves raw audio bytes from a source locator.

    Args:
        session: HTTP session to reuse; a new one is created if omitted.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = config.FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self, source: str) -> FetchedPayload:
        """Download *source* and return its bytes and MIME type.

        Raises:
            FetchError: On connection errors, timeouts or non-2xx responses.
        """
        if not source.startswith(("http://", "https://")):
            raise FetchError(f"unsupported source locator: {source!r}")
        try:
            response = self.session.get(source, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as error:
            raise FetchError(f"failed to fetch {source}: {error}") from error

        content_type = response.headers.get("Content-Type", "")
        mime_type = content_type.split(";", 1)[0].strip() or DEFAULT_MIME_TYPE
        return FetchedPayload(data=response.content, mime_type=mime_type)

    def close(self) -> None:
        self.session.close()
