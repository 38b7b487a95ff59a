"""OpenID-Connect discovery and JWKS caching.

Resolves the provider configuration and its signing keys with per-instance
caching.

Resolution Strategy
-------------------
1) Cache lookup (fast path)
    - If the document is cached → return immediately.

2) Single fetch
    - The first caller takes the lock and fetches; concurrent first callers
      wait and reuse the result instead of fetching again.

3) Failure
    - A failed fetch caches nothing, so the next call retries.

Documents are never refreshed; recreate the client to pick up rotated keys.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Final

from .transport import HTTPTransport

logger = logging.getLogger(__name__)

DISCOVERY_PATH: Final[str] = "/.well-known/openid-configuration"

type OpenIDConfiguration = dict[str, Any]
type JWKS = dict[str, Any]


class DiscoveryCache:
    """Lazily fetched, write-once provider configuration and key set.

    Thread Safety:
        Each document has its own lock. Fetches happen at most once per
        instance as long as they succeed.

    Example
    -------
    discovery = DiscoveryCache(HTTPTransport("https://example.fief.dev"))
    token_endpoint = discovery.get_openid_configuration()["token_endpoint"]
    """

    def __init__(self, transport: HTTPTransport) -> None:
        self._transport = transport
        self._config_lock = threading.Lock()
        self._jwks_lock = threading.Lock()
        self._openid_configuration: OpenIDConfiguration | None = None
        self._jwks: JWKS | None = None

    def get_openid_configuration(self) -> OpenIDConfiguration:
        """Return the provider configuration, fetching it on first use.

        Raises:
            RequestError: If the discovery endpoint answers non-2xx.
        """
        if self._openid_configuration is not None:
            return self._openid_configuration

        with self._config_lock:
            if self._openid_configuration is None:
                logger.debug("Fetching OpenID configuration")
                self._openid_configuration = self._transport.request("GET", DISCOVERY_PATH)
            return self._openid_configuration

    def get_jwks(self) -> JWKS:
        """Return the provider JSON Web Key Set, fetching it on first use.

        Raises:
            RequestError: If the discovery or JWKS endpoint answers non-2xx.
        """
        if self._jwks is not None:
            return self._jwks

        jwks_uri = self.get_openid_configuration()["jwks_uri"]
        with self._jwks_lock:
            if self._jwks is None:
                logger.debug("Fetching JWKS from %s", jwks_uri)
                self._jwks = self._transport.request("GET", jwks_uri)
            return self._jwks
