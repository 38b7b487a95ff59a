"""HTTP transport to the identity provider.

Thin wrapper around a ``requests.Session``:

- Resolves paths relative to the provider base URL
- Applies a default timeout to every call
- Turns non-2xx answers into ``RequestError``

Network exceptions raised by ``requests`` (timeouts, connection errors) are
propagated unchanged; retry policy belongs to the host.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import urljoin

import requests

from .errors import RequestError

logger = logging.getLogger(__name__)


class HTTPTransport:
    """JSON-over-HTTP calls against one identity provider.

    Args:
        base_url: Provider base URL, e.g. ``https://example.fief.dev``.
        session: Optional pre-configured session (proxies, adapters, tests).
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/") + "/"
        self._session = session or requests.Session()
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        return self._base_url.rstrip("/")

    def url(self, path_or_url: str) -> str:
        """Return ``path_or_url`` made absolute against the base URL."""
        if "://" in path_or_url:
            return path_or_url
        return urljoin(self._base_url, path_or_url.lstrip("/"))

    def request(
        self,
        method: str,
        path_or_url: str,
        *,
        access_token: str | None = None,
        data: Mapping[str, str] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: HTTP verb.
            path_or_url: Absolute URL or path relative to the base URL.
            access_token: Sent as ``Authorization: Bearer <token>`` when given.
            data: Form fields, sent ``application/x-www-form-urlencoded``.
            json: JSON body.

        Raises:
            RequestError: On any non-2xx status.
        """
        url = self.url(path_or_url)
        headers = {"Accept": "application/json"}
        if access_token is not None:
            headers["Authorization"] = f"Bearer {access_token}"

        response = self._session.request(
            method,
            url,
            headers=headers,
            data=dict(data) if data is not None else None,
            json=json,
            timeout=self._timeout,
        )
        logger.debug("%s %s -> %s", method, url, response.status_code)

        if not 200 <= response.status_code < 300:
            raise RequestError(response.status_code, _error_detail(response))

        if not response.content:
            return None
        return response.json()


def _error_detail(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
