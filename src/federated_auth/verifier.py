"""ID token and access token verification.

This module verifies tokens issued by the identity provider:

- Resolves signing keys from the cached JWKS (``kid`` lookup, or every
  signature key when the header has no ``kid``)
- Optionally decrypts JWE-wrapped ID tokens with Authlib
- Validates signatures and registered claims using PyJWT
- Binds ID tokens to their exchange through ``c_hash`` / ``at_hash``
- Maps PyJWT / Authlib exceptions to domain-specific error types

Error mapping
-------------
ID tokens: every failure becomes ``IdTokenInvalid``.

Access tokens:
- ``jwt.ExpiredSignatureError`` -> ``AccessTokenExpired``
- any other ``jwt.PyJWTError``  -> ``AccessTokenInvalid``
- requirement failures          -> specific errors from ``authorization``
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import jwt
from authlib.jose import JsonWebEncryption, JsonWebKey
from authlib.jose.errors import JoseError

from .authorization import AccessTokenAuthorizer
from .crypto import HashlibCryptoHelper
from .errors import (
    AccessTokenExpired,
    AccessTokenInvalid,
    CryptoHelperError,
    IdTokenInvalid,
)
from .models import ACR, AccessTokenInfo

if TYPE_CHECKING:
    from .discovery import DiscoveryCache
    from .protocols import Claims, CryptoHelper

logger = logging.getLogger(__name__)

JWE_ALGORITHMS: Final[tuple[str, ...]] = (
    # Key management
    "RSA-OAEP",
    "RSA-OAEP-256",
    "ECDH-ES",
    "ECDH-ES+A128KW",
    "ECDH-ES+A256KW",
    # Content encryption
    "A128CBC-HS256",
    "A192CBC-HS384",
    "A256CBC-HS512",
    "A128GCM",
    "A192GCM",
    "A256GCM",
)


@dataclass(frozen=True, slots=True)
class JWTVerifyOptions:
    """Configuration for token validation rules.

    Attributes:
        client_id: Expected ``aud`` of ID tokens.

        issuer: Expected ``iss`` claim. If None, the ``issuer`` advertised by
            the discovery document is used; if that is absent too, the issuer
            is not validated.

        algorithms: Tuple of allowed signing algorithms. MUST be an explicit
            allowlist to prevent algorithm confusion attacks. Default: ("RS256",)

        leeway: Clock skew tolerance in seconds for exp/nbf/iat validation.
            Default: 0 (no leeway).

        encryption_algorithms: Allowed JWE ``alg`` and ``enc`` values for
            encrypted ID tokens. RSA1_5 is deliberately absent.
    """

    client_id: str
    issuer: str | None = None
    algorithms: tuple[str, ...] = ("RS256",)
    leeway: int = 0
    encryption_algorithms: tuple[str, ...] = JWE_ALGORITHMS


_KTY_BY_ALG_FAMILY: Final[dict[str, str]] = {
    "RS": "RSA",
    "PS": "RSA",
    "ES": "EC",
    "Ed": "OKP",
    "HS": "oct",
}
"""JWK ``kty`` able to verify each JWS algorithm family."""


class TokenVerifier:
    """Verifies ID tokens and access tokens against the provider JWKS.

    Architecture:
        1. Decrypt (ID tokens, when an encryption key is configured)
        2. Read ``kid`` / ``alg`` from the unverified header
        3. Verify signature and claims via PyJWT
        4. ID tokens: check hash-claim binding
           Access tokens: enforce requirements via AccessTokenAuthorizer

    Attributes:
        _discovery: Source of the cached JWKS.
        _opt: Immutable verification options.
        _crypto: Validation hash implementation.
        _decryption_key: Private JWK used to decrypt ID tokens, if any.
    """

    def __init__(
        self,
        discovery: DiscoveryCache,
        options: JWTVerifyOptions,
        *,
        crypto: CryptoHelper | None = None,
        encryption_key: str | Mapping[str, Any] | None = None,
        authorizer: AccessTokenAuthorizer | None = None,
    ) -> None:
        """Initialize the token verifier.

        Args:
            discovery: Provider configuration and JWKS cache.
            options: Token validation configuration.
            crypto: Hash helper for ``c_hash`` / ``at_hash``. Defaults to HashlibCryptoHelper.
            encryption_key: Private JWK (JSON string or mapping) for encrypted ID tokens.
            authorizer: Requirement enforcement for access tokens.
        """
        self._discovery = discovery
        self._opt = options
        self._crypto = crypto or HashlibCryptoHelper()
        self._authorizer = authorizer or AccessTokenAuthorizer()
        self._jwe = JsonWebEncryption(algorithms=list(options.encryption_algorithms))
        self._decryption_key = None
        if encryption_key is not None:
            raw = json.loads(encryption_key) if isinstance(encryption_key, str) else dict(encryption_key)
            self._decryption_key = JsonWebKey.import_key(raw)

    def verify_id_token(
        self,
        id_token: str,
        *,
        code: str | None = None,
        access_token: str | None = None,
    ) -> Claims:
        """Verify an ID token and return its claims.

        Args:
            id_token: Compact JWS, or compact JWE when an encryption key is set.
            code: Authorization code of the same exchange, checked against ``c_hash``.
            access_token: Access token of the same exchange, checked against ``at_hash``.

        Raises:
            IdTokenInvalid: On any decryption, signature, claim or binding failure.
            RequestError: If the JWKS cannot be fetched.
        """
        try:
            signed_token = id_token
            if self._decryption_key is not None:
                signed_token = self._decrypt(id_token)

            header, claims = self._decode(signed_token, audience=self._opt.client_id)
            alg = header.get("alg", "RS256")

            self._check_hash(claims.get("c_hash"), code, alg)
            self._check_hash(claims.get("at_hash"), access_token, alg)
        except IdTokenInvalid:
            logger.warning("ID token hash binding mismatch")
            raise
        except (jwt.PyJWTError, JoseError, CryptoHelperError, ValueError, TypeError) as e:
            logger.warning("ID token rejected: %s", type(e).__name__)
            raise IdTokenInvalid("ID token validation failed") from e

        return claims

    def validate_access_token(
        self,
        access_token: str,
        required_scope: Iterable[str] | None = None,
        required_acr: ACR | str | None = None,
        required_permissions: Iterable[str] | None = None,
    ) -> AccessTokenInfo:
        """Verify an access token and enforce requirements.

        Args:
            access_token: Raw compact JWS.
            required_scope: Scopes that must all be granted.
            required_acr: Minimum authentication level.
            required_permissions: Permissions that must all be granted.

        Returns:
            AccessTokenInfo reflecting the verified claims.

        Raises:
            AccessTokenExpired: Signature valid but ``exp`` has passed.
            AccessTokenInvalid: Malformed token, bad signature, missing claims.
            AccessTokenMissingScope: A required scope is not granted.
            AccessTokenACRTooLow: Token ACR ranks below ``required_acr``.
            AccessTokenMissingPermission: A required permission is not granted.
        """
        try:
            _, claims = self._decode(access_token, audience=None)
        except jwt.ExpiredSignatureError as e:
            raise AccessTokenExpired("Token has expired") from e
        except jwt.PyJWTError as e:
            logger.warning("Access token rejected: %s", type(e).__name__)
            raise AccessTokenInvalid(f"Token validation failed: {e}") from e

        return self._authorizer.authorize(
            claims,
            access_token,
            scope=frozenset(required_scope or ()),
            acr=ACR(required_acr) if required_acr is not None else None,
            permissions=frozenset(required_permissions or ()),
        )

    def _decrypt(self, token: str) -> str:
        data = self._jwe.deserialize_compact(token, self._decryption_key)
        return data["payload"].decode("utf-8")

    def _issuer(self) -> str | None:
        if self._opt.issuer is not None:
            return self._opt.issuer
        return self._discovery.get_openid_configuration().get("issuer")

    def _signing_keys(self, kid: str | None, alg: str) -> list[Any]:
        kty = _KTY_BY_ALG_FAMILY.get(alg[:2])
        keys: list[Any] = []
        for jwk_data in self._discovery.get_jwks().get("keys", []):
            if jwk_data.get("use", "sig") != "sig":
                continue
            if kid is not None and jwk_data.get("kid") != kid:
                continue
            # Only keys usable with the token's algorithm
            if jwk_data.get("kty") != kty or jwk_data.get("alg", alg) != alg:
                continue
            try:
                keys.append(jwt.PyJWK.from_dict(jwk_data, algorithm=alg).key)
            except (jwt.PyJWKError, jwt.InvalidKeyError, ValueError):
                continue
        return keys

    def _decode(self, token: str, *, audience: str | None) -> tuple[dict[str, Any], dict[str, Any]]:
        # Header is read unverified only to pick the key.
        header = jwt.get_unverified_header(token)
        kid = header.get("kid")
        if kid is not None and not isinstance(kid, str):
            raise jwt.InvalidTokenError("Token header 'kid' is not a string")
        alg = header.get("alg")
        if not isinstance(alg, str) or alg not in self._opt.algorithms:
            raise jwt.InvalidAlgorithmError("The specified alg value is not allowed")

        keys = self._signing_keys(kid, alg)
        if not keys:
            raise jwt.InvalidTokenError("No matching signing key")

        last_error: jwt.PyJWTError | None = None
        for key in keys:
            try:
                claims = jwt.decode(
                    token,
                    key,
                    algorithms=list(self._opt.algorithms),  # Explicit allowlist
                    audience=audience,
                    issuer=self._issuer(),
                    leeway=self._opt.leeway,
                    options={"verify_aud": audience is not None},
                )
                return header, claims
            except (jwt.InvalidSignatureError, jwt.InvalidKeyError) as e:
                last_error = e
            except TypeError as e:
                last_error = jwt.InvalidKeyError(str(e))

        assert last_error is not None
        raise last_error

    def _check_hash(self, claim: Any, value: str | None, alg: str) -> None:
        if claim is None:
            return
        if value is None or not self._crypto.is_valid_hash(value, claim, alg):
            raise IdTokenInvalid("Hash claim mismatch")
