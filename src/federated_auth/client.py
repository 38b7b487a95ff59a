"""OpenID-Connect client facade.

``OIDCClient`` is the stable operation surface hosts build on. It wires the
transport, the discovery cache, the token verifier and the token exchange,
and adds the bearer-authenticated profile calls.

Example usage
-------------

.. code-block:: python

    client = OIDCClient(
        base_url="https://example.fief.dev",
        client_id="YOUR_CLIENT_ID",
        client_secret="YOUR_CLIENT_SECRET",
    )

    url = client.get_auth_url("https://www.example.com/callback", scope=["openid"])
    tokens, userinfo = client.auth_callback(code, "https://www.example.com/callback")
    info = client.validate_access_token(tokens.access_token, required_scope=["openid"])
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from .crypto import HashlibCryptoHelper
from .discovery import DiscoveryCache
from .exchange import TokenExchange
from .transport import HTTPTransport
from .verifier import JWTVerifyOptions, TokenVerifier

if TYPE_CHECKING:
    import requests

    from .config import AuthSettings
    from .models import ACR, AccessTokenInfo, TokenResponse
    from .protocols import CodeChallengeMethod, CryptoHelper, UserInfo

logger = logging.getLogger(__name__)


class OIDCClient:
    """Client of one identity provider for one OAuth2 client.

    Args:
        base_url: Provider base URL.
        client_id: OAuth2 client id.
        client_secret: Secret of confidential clients.
        encryption_key: Private JWK (JSON string or mapping) to decrypt ID tokens.
        algorithms: Allowed token signing algorithms.
        leeway: Clock skew tolerance in seconds.
        timeout: HTTP timeout in seconds.
        session: Injected ``requests.Session``.
        crypto: Injected hashing / PKCE helper.
    """

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str | None = None,
        *,
        encryption_key: str | Mapping[str, Any] | None = None,
        algorithms: tuple[str, ...] = ("RS256",),
        leeway: int = 0,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        crypto: CryptoHelper | None = None,
    ) -> None:
        self.client_id = client_id
        self.crypto: CryptoHelper = crypto or HashlibCryptoHelper()
        self._transport = HTTPTransport(base_url, session=session, timeout=timeout)
        self._discovery = DiscoveryCache(self._transport)
        self._verifier = TokenVerifier(
            self._discovery,
            JWTVerifyOptions(client_id=client_id, algorithms=algorithms, leeway=leeway),
            crypto=self.crypto,
            encryption_key=encryption_key,
        )
        self._exchange = TokenExchange(
            self._transport,
            self._discovery,
            self._verifier,
            client_id,
            client_secret,
        )

    @classmethod
    def from_settings(
        cls,
        settings: AuthSettings,
        *,
        session: requests.Session | None = None,
        crypto: CryptoHelper | None = None,
    ) -> OIDCClient:
        return cls(
            settings.base_url,
            settings.client_id,
            settings.client_secret,
            encryption_key=settings.encryption_key,
            algorithms=settings.algorithms,
            leeway=settings.leeway,
            timeout=settings.timeout,
            session=session,
            crypto=crypto,
        )

    @property
    def base_url(self) -> str:
        return self._transport.base_url

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def get_auth_url(
        self,
        redirect_uri: str,
        *,
        state: str | None = None,
        scope: Iterable[str] | None = None,
        code_challenge: str | None = None,
        code_challenge_method: CodeChallengeMethod | None = None,
        lang: str | None = None,
        extras_params: Mapping[str, str] | None = None,
    ) -> str:
        """Return the authorization URL to redirect the user to.

        Optional parameters are omitted from the query string when absent.
        """
        params: dict[str, str] = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
        }
        if state is not None:
            params["state"] = state
        if scope is not None:
            params["scope"] = " ".join(scope)
        if code_challenge is not None and code_challenge_method is not None:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = code_challenge_method
        if lang is not None:
            params["ui_locales"] = lang
        if extras_params is not None:
            params.update(extras_params)

        authorization_endpoint = self._discovery.get_openid_configuration()["authorization_endpoint"]
        return f"{authorization_endpoint}?{urlencode(params)}"

    def auth_callback(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> tuple[TokenResponse, UserInfo]:
        """Exchange an authorization code; see TokenExchange.exchange_authorization_code."""
        return self._exchange.exchange_authorization_code(code, redirect_uri, code_verifier)

    def auth_refresh_token(
        self,
        refresh_token: str,
        scope: Iterable[str] | None = None,
    ) -> tuple[TokenResponse, UserInfo]:
        """Refresh tokens; see TokenExchange.exchange_refresh_token."""
        return self._exchange.exchange_refresh_token(refresh_token, scope)

    def validate_access_token(
        self,
        access_token: str,
        required_scope: Iterable[str] | None = None,
        required_acr: ACR | str | None = None,
        required_permissions: Iterable[str] | None = None,
    ) -> AccessTokenInfo:
        """Validate an access token locally; see TokenVerifier.validate_access_token."""
        return self._verifier.validate_access_token(
            access_token, required_scope, required_acr, required_permissions
        )

    # ------------------------------------------------------------------
    # User
    # ------------------------------------------------------------------

    def userinfo(self, access_token: str) -> UserInfo:
        """Fetch fresh user information from the userinfo endpoint.

        Raises:
            RequestError: Endpoint answered non-2xx.
        """
        userinfo_endpoint = self._discovery.get_openid_configuration()["userinfo_endpoint"]
        return self._transport.request("GET", userinfo_endpoint, access_token=access_token)

    def update_profile(self, access_token: str, data: Mapping[str, Any]) -> UserInfo:
        """Update the user's profile fields and return the new user information."""
        return self._transport.request(
            "PATCH", "/api/profile", access_token=access_token, json=dict(data)
        )

    def change_password(self, access_token: str, new_password: str) -> UserInfo:
        return self._transport.request(
            "PATCH", "/api/password", access_token=access_token, json={"password": new_password}
        )

    def email_change(self, access_token: str, email: str) -> UserInfo:
        """Request an email change; the provider sends a verification code."""
        return self._transport.request(
            "PATCH", "/api/email/change", access_token=access_token, json={"email": email}
        )

    def email_verify(self, access_token: str, code: str) -> UserInfo:
        """Confirm an email change with the code the user received."""
        return self._transport.request(
            "POST", "/api/email/verify", access_token=access_token, json={"code": code}
        )

    def get_logout_url(self, redirect_uri: str) -> str:
        """Return the provider logout URL, coming back to ``redirect_uri``."""
        return f"{self._transport.url('/logout')}?{urlencode({'redirect_uri': redirect_uri})}"
