"""Protocol definitions for the OpenID-Connect client.

This module defines structural interfaces using Protocol (PEP 544) for the
collaborators a host injects:

- Cryptographic helpers (hashing, PKCE)
- Token extraction from an arbitrary request shape
- User information caching
- Session storage for browser-style flows
- Navigation (current URL and redirects)

Using protocols allows for duck-typing and easier testing/mocking without
requiring explicit inheritance. Any class that implements the required methods
satisfies the protocol.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Literal, Protocol

if TYPE_CHECKING:
    from .models import TokenResponse

# ============================================================================
# Type Aliases
# ============================================================================

type Claims = Mapping[str, Any]
"""Decoded JWT payload as an immutable mapping."""

type UserInfo = Mapping[str, Any]
"""Identity claims of a user: ``sub``, ``email``, ``tenant_id``, ``fields``
and any provider-defined extras. No fixed schema."""

type CodeChallengeMethod = Literal["plain", "S256"]

type ViewFunc = Callable[..., Any]
"""Type alias for Flask view functions (callable that takes any args and returns any)."""


# ============================================================================
# Core Protocols
# ============================================================================


class CryptoHelper(Protocol):
    """Hashing and PKCE primitives.

    A host picks the implementation at construction time. The default,
    ``HashlibCryptoHelper``, works on any CPython.
    """

    def get_validation_hash(self, value: str, alg: str = "RS256") -> str:
        """Return the ``c_hash`` / ``at_hash`` style half-hash of ``value``."""
        ...

    def is_valid_hash(self, value: str, hash: str, alg: str = "RS256") -> bool:
        """Check that ``hash`` is the validation hash of ``value``."""
        ...

    def generate_code_verifier(self) -> str:
        """Return a fresh, URL-safe PKCE code verifier."""
        ...

    def get_code_challenge(self, code: str, method: CodeChallengeMethod) -> str:
        """Derive the PKCE code challenge of ``code``.

        Raises:
            CryptoHelperError: If ``method`` is neither ``plain`` nor ``S256``.
        """
        ...


class Extractor(Protocol):
    """Protocol for pulling a raw token out of a request.

    The request type is left open: any object exposing the attributes the
    implementation reads (``headers``, ``cookies``...) will do.
    """

    def extract(self, request: Any) -> str | None:
        """Return the raw token, or None when the request carries none.

        Note:
            Absence is not an error here. The authenticator decides whether a
            missing token is acceptable (optional authentication).
        """
        ...


class UserInfoCache(Protocol):
    """Protocol for caching user information by user id.

    Implementations may be process local or shared (Redis...).
    """

    def get(self, user_id: str) -> UserInfo | None:
        """Return cached user information, None on miss."""
        ...

    def set(self, user_id: str, userinfo: UserInfo) -> None:
        """Store user information for ``user_id``."""
        ...

    def remove(self, user_id: str) -> None:
        """Drop the entry of ``user_id`` if present."""
        ...

    def clear(self) -> None:
        """Drop every entry."""
        ...


class AuthStorage(Protocol):
    """Session storage used by ``BrowserAuth``.

    Holds three independent values: user information, the token response and
    the PKCE code verifier of the login attempt in progress.
    """

    def get_userinfo(self) -> UserInfo | None: ...

    def set_userinfo(self, userinfo: UserInfo) -> None: ...

    def get_token_info(self) -> TokenResponse | None: ...

    def set_token_info(self, token_info: TokenResponse) -> None: ...

    def get_code_verifier(self) -> str | None: ...

    def set_code_verifier(self, code: str) -> None: ...

    def clear_code_verifier(self) -> None: ...

    def clear_session(self) -> None:
        """Drop user information, tokens and code verifier."""
        ...


class Navigator(Protocol):
    """Access to the current location and the ability to redirect.

    Browser-style hosts implement this over their own request/response
    objects (see ``FlaskNavigator``).
    """

    def current_url(self) -> str:
        """Return the absolute URL currently being handled."""
        ...

    def redirect(self, url: str) -> None:
        """Send the user agent to ``url``."""
        ...
