"""Token extraction strategies from HTTP requests.

This module provides implementations of the Extractor protocol for retrieving
access tokens from different parts of an HTTP request. They work with any
request object exposing ``headers`` and ``cookies`` mappings (Flask/Werkzeug,
Starlette, Django adapters...).

Implementations:
- BearerExtractor: Extracts from Authorization: <scheme> <token> header (recommended)
- CookieExtractor: Extracts from HTTP cookies (for browser-based apps)

Security Considerations:
- Bearer tokens are standard for APIs and recommended for most use cases
- Cookie-based extraction requires proper CSRF protection
- Never extract tokens from URL query parameters (visible in logs/history)
"""

from __future__ import annotations

from typing import Any


class BearerExtractor:
    """Extracts the token from the Authorization header.

    Expects requests with header format:
        Authorization: Bearer <token>

    The scheme comparison is case-insensitive. Malformed headers are treated
    as "no token" so optional authentication still works.

    Example:
        ```python
        authenticator = RequestAuthenticator(client, BearerExtractor())
        ```
    """

    def __init__(self, scheme: str = "bearer") -> None:
        if not scheme or not scheme.strip():
            raise ValueError("scheme cannot be empty")
        self._scheme = scheme.strip().lower()

    def extract(self, request: Any) -> str | None:
        """Return the token of the Authorization header, or None.

        Implementation Notes:
            - Header must have exactly two space separated parts
            - First part must match the scheme (case-insensitive)
        """
        auth_header = (request.headers.get("Authorization") or "").strip()
        if not auth_header:
            return None

        parts = auth_header.split(" ")
        if len(parts) != 2:
            return None

        scheme, token = parts
        if scheme.lower() != self._scheme or not token:
            return None

        return token


class CookieExtractor:
    """Extracts the token from an HTTP cookie.

    Security Notes:
        - Cookies MUST use HttpOnly flag to prevent XSS attacks
        - Cookies MUST use Secure flag (HTTPS only)
        - Cookie-based auth is vulnerable to CSRF; implement CSRF protection

    Attributes:
        _name: Name of the cookie containing the token.
    """

    def __init__(self, cookie_name: str = "access_token") -> None:
        """Initialize cookie extractor.

        Raises:
            ValueError: If cookie_name is empty.
        """
        if not cookie_name or not cookie_name.strip():
            raise ValueError("cookie_name cannot be empty")
        self._name = cookie_name

    def extract(self, request: Any) -> str | None:
        return request.cookies.get(self._name) or None
