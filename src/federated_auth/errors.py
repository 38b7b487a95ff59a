"""Authentication and authorization errors.

This module defines the exception hierarchy for the OpenID-Connect client.
All errors inherit from AuthError to allow catch-all error handling.

The hierarchy is split in three families:

- Provider communication: ``RequestError``.
- Token verification: ``AccessToken*`` and ``IdTokenInvalid``.
- Session and request level: ``AuthorizeError``, ``NotAuthenticatedError``,
  ``Unauthorized`` and ``Forbidden``.

Only the request authentication layer (``federated_auth.server``) collapses
the verification family into ``Unauthorized`` / ``Forbidden``. Direct client
callers see the fine-grained errors.

Security Note:
    Error messages are intentionally generic to avoid leaking implementation
    details. Detailed logs should be written server-side, not returned to clients.
"""

from __future__ import annotations

from typing import Any


class AuthError(Exception):
    """Base exception for all authentication and authorization failures.

    Attributes:
        error_code: HTTP status a host adapter should answer with.
        description: Client-safe description of the failure.
    """

    error_code: int = 401
    description: str = "Authentication failed"


class RequestError(AuthError):
    """Raised when the identity provider answers with a non-2xx status.

    The status and body are propagated unchanged so the host can decide on
    a retry policy.

    Attributes:
        status: HTTP status code returned by the provider.
        detail: Decoded JSON body if any, raw text otherwise.
    """

    error_code = 502
    description = "Identity provider request failed"

    def __init__(self, status: int, detail: Any = None) -> None:
        super().__init__(f"Request failed with status {status}: {detail!r}")
        self.status = status
        self.detail = detail


class AccessTokenInvalid(AuthError):  # noqa: N818
    """Raised when an access token is present but cannot be verified.

    This occurs when:
    - Token is malformed (not a valid JWS structure)
    - Signature verification fails or no key of the set matches
    - The ``scope``, ``acr`` or ``permissions`` claim is missing
    - The ``acr`` value is not a known level
    """

    description = "Invalid token"


class AccessTokenExpired(AuthError):  # noqa: N818
    """Raised when a correctly signed access token has passed its ``exp``.

    Note:
        Treat identically to AccessTokenInvalid from a security perspective.
        The distinction helps with metrics and debugging.
    """

    description = "Expired token"


class AccessTokenMissingScope(AuthError):  # noqa: N818
    """Raised when a valid access token lacks a required scope."""

    error_code = 403
    description = "Missing scope"


class AccessTokenMissingPermission(AuthError):  # noqa: N818
    """Raised when a valid access token lacks a required permission."""

    error_code = 403
    description = "Missing permission"


class AccessTokenACRTooLow(AuthError):  # noqa: N818
    """Raised when the token ACR is below the required level."""

    error_code = 403
    description = "Authentication context too low"


class IdTokenInvalid(AuthError):  # noqa: N818
    """Raised when an ID token fails decryption, signature, claims or hash binding.

    Security Note:
        This error is deliberately coarse. Signature failure, expiry and
        ``c_hash`` / ``at_hash`` mismatch are indistinguishable to callers.
    """

    description = "Invalid ID token"


class AuthorizeError(AuthError):
    """Raised when the provider reports an error on the redirect callback.

    Attributes:
        error: OAuth2 error code (``access_denied``, ``missing_code``...).
        error_description: Optional human readable description from the provider.
    """

    error_code = 400
    description = "Authorization failed"

    def __init__(self, error: str, error_description: str | None = None) -> None:
        super().__init__(error if error_description is None else f"{error}: {error_description}")
        self.error = error
        self.error_description = error_description


class NotAuthenticatedError(AuthError):
    """Raised when an operation requiring a session runs without one."""

    description = "Not authenticated"


class CryptoHelperError(AuthError):
    """Raised for unsupported PKCE challenge methods."""

    error_code = 500
    description = "Crypto helper error"


class Unauthorized(AuthError):  # noqa: N818
    """Request could not be authenticated (missing, invalid or expired token).

    This should result in an HTTP 401 Unauthorized response.
    """

    error_code = 401
    description = "Unauthorized"


class Forbidden(AuthError):  # noqa: N818
    """Request is authenticated but lacks scope, permission or ACR.

    This should result in an HTTP 403 Forbidden response, indicating that
    authentication succeeded but authorization failed.
    """

    error_code = 403
    description = "Forbidden"
