"""Authorization-code and refresh-token grants.

Both grants POST a form-encoded request to the token endpoint, parse the
token response and verify the returned ID token before anything is handed
back to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

from .errors import IdTokenInvalid
from .models import TokenResponse

if TYPE_CHECKING:
    from .discovery import DiscoveryCache
    from .protocols import UserInfo
    from .transport import HTTPTransport
    from .verifier import TokenVerifier

logger = logging.getLogger(__name__)


class TokenExchange:
    """Token endpoint client.

    Attributes:
        _client_id: OAuth2 client id sent with every grant.
        _client_secret: Sent as ``client_secret`` form field when configured.
    """

    def __init__(
        self,
        transport: HTTPTransport,
        discovery: DiscoveryCache,
        verifier: TokenVerifier,
        client_id: str,
        client_secret: str | None = None,
    ) -> None:
        self._transport = transport
        self._discovery = discovery
        self._verifier = verifier
        self._client_id = client_id
        self._client_secret = client_secret

    def exchange_authorization_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> tuple[TokenResponse, UserInfo]:
        """Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the redirect callback.
            redirect_uri: Same redirect URI as the authorization request.
            code_verifier: PKCE verifier of the login attempt, if any.

        Returns:
            The token response and the verified ID token claims.

        Raises:
            RequestError: Token endpoint answered non-2xx.
            IdTokenInvalid: The token response is malformed, or its ID token failed
                verification or hash binding.
        """
        data = {
            "grant_type": "authorization_code",
            "client_id": self._client_id,
            "code": code,
            "redirect_uri": redirect_uri,
        }
        if code_verifier is not None:
            data["code_verifier"] = code_verifier

        tokens = self._post(data)
        logger.debug("Authorization code exchanged")
        userinfo = self._verifier.verify_id_token(
            tokens.id_token, code=code, access_token=tokens.access_token
        )
        return tokens, userinfo

    def exchange_refresh_token(
        self,
        refresh_token: str,
        scope: Iterable[str] | None = None,
    ) -> tuple[TokenResponse, UserInfo]:
        """Obtain fresh tokens with a refresh token.

        Raises:
            RequestError: Token endpoint answered non-2xx.
            IdTokenInvalid: The token response is malformed, or its ID token failed
                verification or hash binding.
        """
        data = {
            "grant_type": "refresh_token",
            "client_id": self._client_id,
            "refresh_token": refresh_token,
        }
        if scope is not None:
            data["scope"] = " ".join(scope)

        tokens = self._post(data)
        logger.debug("Refresh token exchanged")
        userinfo = self._verifier.verify_id_token(
            tokens.id_token, access_token=tokens.access_token
        )
        return tokens, userinfo

    def _post(self, data: dict[str, str]) -> TokenResponse:
        if self._client_secret is not None:
            data["client_secret"] = self._client_secret

        token_endpoint = self._discovery.get_openid_configuration()["token_endpoint"]
        body = self._transport.request("POST", token_endpoint, data=data)
        if not isinstance(body, Mapping) or "id_token" not in body:
            logger.warning("Token response carries no ID token")
            raise IdTokenInvalid("Token response carries no ID token")
        try:
            return TokenResponse.from_dict(body)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed token response: %s", type(e).__name__)
            raise IdTokenInvalid("Malformed token response") from e
