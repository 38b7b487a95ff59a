"""Request authentication contract shared by every host adapter.

``RequestAuthenticator`` turns an arbitrary request into an
``AuthenticateRequestResult``. Host specifics are confined to two injected
collaborators:

- an ``Extractor`` pulling the token out of the host's request type,
- an optional ``UserInfoCache``.

High-level flow (per request)
-----------------------------
1. Extract the token. Absent and not optional -> ``Unauthorized``.
2. Validate it locally (signature, expiry, scope, permissions, ACR).
   - invalid / expired -> ``Unauthorized`` (empty result if optional)
   - missing scope / permission / ACR too low -> ``Forbidden``
3. Resolve the user from the cache; on a miss, or with ``refresh``, fetch it
   from the provider and write it back.

This is the only layer collapsing the verification errors into
``Unauthorized`` / ``Forbidden``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .errors import (
    AccessTokenACRTooLow,
    AccessTokenExpired,
    AccessTokenInvalid,
    AccessTokenMissingPermission,
    AccessTokenMissingScope,
    Forbidden,
    Unauthorized,
)

if TYPE_CHECKING:
    from .client import OIDCClient
    from .models import ACR, AccessTokenInfo
    from .protocols import Extractor, UserInfo, UserInfoCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuthenticateRequestResult:
    """Outcome of authenticating one request.

    Both fields are None for an unauthenticated request allowed through
    ``optional=True``. ``user`` is also None when no cache is configured.
    """

    access_token_info: AccessTokenInfo | None = None
    user: UserInfo | None = None


type Authenticate = Callable[[Any], AuthenticateRequestResult]


class RequestAuthenticator:
    """Environment-agnostic request authentication.

    Example:
        ```python
        authenticator = RequestAuthenticator(
            client,
            BearerExtractor(),
            InMemoryUserInfoCache(),
        )
        authenticate = authenticator.authenticate(scope=["openid"])
        result = authenticate(request)
        ```
    """

    def __init__(
        self,
        client: OIDCClient,
        extractor: Extractor,
        userinfo_cache: UserInfoCache | None = None,
    ) -> None:
        self._client = client
        self._extractor = extractor
        self._userinfo_cache = userinfo_cache

    @property
    def client(self) -> OIDCClient:
        return self._client

    def authenticate(
        self,
        *,
        optional: bool = False,
        scope: Sequence[str] | None = None,
        permissions: Sequence[str] | None = None,
        acr: ACR | str | None = None,
        refresh: bool = False,
    ) -> Authenticate:
        """Return a function authenticating requests with these requirements.

        Args:
            optional: Let unauthenticated requests through with an empty result.
            scope: Scopes the token must all grant.
            permissions: Permissions the token must all grant.
            acr: Minimum authentication level.
            refresh: Always fetch fresh user information from the provider.

        Raises (from the returned function):
            Unauthorized: Missing, invalid or expired token (unless optional).
            Forbidden: Valid token not meeting the requirements.
            RequestError: The provider failed while fetching user information.
        """

        def _authenticate(request: Any) -> AuthenticateRequestResult:
            token = self._extractor.extract(request)
            if token is None:
                if optional:
                    return AuthenticateRequestResult()
                raise Unauthorized("Missing token")

            try:
                info = self._client.validate_access_token(token, scope, acr, permissions)
            except (AccessTokenInvalid, AccessTokenExpired) as e:
                if optional:
                    return AuthenticateRequestResult()
                raise Unauthorized(e.description) from e
            except (
                AccessTokenMissingScope,
                AccessTokenMissingPermission,
                AccessTokenACRTooLow,
            ) as e:
                logger.info("Request forbidden: %s", e.description)
                raise Forbidden(e.description) from e

            return AuthenticateRequestResult(access_token_info=info, user=self._resolve_user(info, refresh))

        return _authenticate

    def _resolve_user(self, info: AccessTokenInfo, refresh: bool) -> UserInfo | None:
        if self._userinfo_cache is None:
            return None

        user = None if refresh else self._userinfo_cache.get(info.id)
        if user is None:
            user = self._client.userinfo(info.access_token)
            self._userinfo_cache.set(info.id, user)
        return user
