"""
OpenID-Connect federation client with local token validation.

High-level flow
---------------
Login (browser-style host):

1. `BrowserAuth.redirect_to_login(...)` stores a PKCE verifier and redirects
   to the provider's authorization endpoint with its S256 challenge.
2. `BrowserAuth.auth_callback(...)` exchanges the returned code once:
   - `TokenExchange` POSTs the grant to the token endpoint
   - `TokenVerifier.verify_id_token` decrypts (optional), checks the
     signature against the cached JWKS, then `c_hash` / `at_hash`
3. Tokens and user information land in the injected `AuthStorage`.

Per request (server host):

1. `RequestAuthenticator.authenticate(...)` runs.
2. An `Extractor` pulls the access token from the request.
3. `TokenVerifier.validate_access_token` checks signature and expiry, then
   scope / permissions / ACR.
4. User information comes from the `UserInfoCache`, or the provider on a miss.

Security notes
--------------
- Never trust claims until signature verification succeeds.
- Only allow known algorithms (avoid algorithm confusion).
- Authorization codes and PKCE verifiers are single use.

Example usage
-------------

.. code-block:: python

    from flask import Flask, g

    from federated_auth import (
        AuthExtension,
        BearerExtractor,
        InMemoryUserInfoCache,
        OIDCClient,
        RequestAuthenticator,
    )

    client = OIDCClient(
        base_url="https://example.fief.dev",
        client_id="YOUR_CLIENT_ID",
        client_secret="YOUR_CLIENT_SECRET",
    )
    authenticator = RequestAuthenticator(
        client, BearerExtractor(), InMemoryUserInfoCache()
    )

    app = Flask(__name__)
    auth = AuthExtension(authenticator)
    auth.init_app(app)

    @app.route("/castles", methods=["POST"])
    @auth.require(scope=["openid"], permissions=["castles:create"])
    def create_castle():
        return {"owner": g.user["email"]}
"""

# Authorization
from .authorization import AccessTokenAuthorizer, ClaimAccess, ClaimsMapping

# Browser session
from .browser import BrowserAuth, InMemoryAuthStorage

# Cache stores
from .cache_stores import InMemoryUserInfoCache, RedisUserInfoCache

# Client
from .client import OIDCClient

# Configuration
from .config import AuthSettings

# Crypto
from .crypto import HashlibCryptoHelper

# Discovery
from .discovery import DiscoveryCache

# Errors
from .errors import (
    AccessTokenACRTooLow,
    AccessTokenExpired,
    AccessTokenInvalid,
    AccessTokenMissingPermission,
    AccessTokenMissingScope,
    AuthError,
    AuthorizeError,
    CryptoHelperError,
    Forbidden,
    IdTokenInvalid,
    NotAuthenticatedError,
    RequestError,
    Unauthorized,
)

# Token exchange
from .exchange import TokenExchange

# Extractors
from .extractors import BearerExtractor, CookieExtractor

# Flask extension
from .flask_extension import AuthExtension, FlaskNavigator, FlaskSessionStorage

# Models
from .models import ACR, ACR_LEVELS_ORDER, AccessTokenInfo, TokenResponse

# Protocols
from .protocols import (
    AuthStorage,
    Claims,
    CryptoHelper,
    Extractor,
    Navigator,
    UserInfo,
    UserInfoCache,
    ViewFunc,
)

# Request authentication
from .server import AuthenticateRequestResult, RequestAuthenticator

# Transport
from .transport import HTTPTransport

# Verifier
from .verifier import JWTVerifyOptions, TokenVerifier

__all__ = [
    # Errors
    "AuthError",
    "RequestError",
    "AccessTokenInvalid",
    "AccessTokenExpired",
    "AccessTokenMissingScope",
    "AccessTokenMissingPermission",
    "AccessTokenACRTooLow",
    "IdTokenInvalid",
    "AuthorizeError",
    "NotAuthenticatedError",
    "CryptoHelperError",
    "Unauthorized",
    "Forbidden",
    # Protocols
    "AuthStorage",
    "Claims",
    "CryptoHelper",
    "Extractor",
    "Navigator",
    "UserInfo",
    "UserInfoCache",
    "ViewFunc",
    # Models
    "ACR",
    "ACR_LEVELS_ORDER",
    "AccessTokenInfo",
    "TokenResponse",
    # Configuration
    "AuthSettings",
    # Crypto
    "HashlibCryptoHelper",
    # Transport / discovery
    "HTTPTransport",
    "DiscoveryCache",
    # Verifier
    "JWTVerifyOptions",
    "TokenVerifier",
    # Authorization
    "AccessTokenAuthorizer",
    "ClaimAccess",
    "ClaimsMapping",
    # Token exchange
    "TokenExchange",
    # Client
    "OIDCClient",
    # Browser session
    "BrowserAuth",
    "InMemoryAuthStorage",
    # Extractors
    "BearerExtractor",
    "CookieExtractor",
    # Cache stores
    "InMemoryUserInfoCache",
    "RedisUserInfoCache",
    # Request authentication
    "AuthenticateRequestResult",
    "RequestAuthenticator",
    # Flask extension
    "AuthExtension",
    "FlaskNavigator",
    "FlaskSessionStorage",
]
