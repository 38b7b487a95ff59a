"""Claims access and scope / permission / ACR enforcement for access tokens.

This module reads the authorization claims of an already signature-verified
access token and enforces route requirements on them.

Security Notes
--------------
Unlike generic RBAC, the authorization claims are mandatory: an access token
without ``scope``, ``acr`` or ``permissions`` is malformed and rejected as
``AccessTokenInvalid``. Unsatisfied requirements raise the specific
``AccessTokenMissingScope`` / ``AccessTokenMissingPermission`` /
``AccessTokenACRTooLow`` errors so callers can tell forbidden from
unauthenticated.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import cast

from .errors import (
    AccessTokenACRTooLow,
    AccessTokenInvalid,
    AccessTokenMissingPermission,
    AccessTokenMissingScope,
)
from .models import ACR, AccessTokenInfo
from .protocols import Claims


@dataclass(frozen=True, slots=True)
class ClaimsMapping:
    """Location of the authorization claims in the access token payload.

    Attributes:
        scope_claim: Space separated granted scopes. Default ``"scope"``.
        acr_claim: Authentication level. Default ``"acr"``.
        permissions_claim: List of granted permissions. Default ``"permissions"``.
        subject_claim: User id. Default ``"sub"``.
    """

    scope_claim: str = "scope"
    acr_claim: str = "acr"
    permissions_claim: str = "permissions"
    subject_claim: str = "sub"


class ClaimAccess:
    """Extracts and normalizes authorization data from verified claims.

    Every accessor raises ``AccessTokenInvalid`` when its claim is missing or
    has an unexpected type.

    Examples:
        >>> accessor = ClaimAccess(ClaimsMapping())
        >>> accessor.scope({"scope": "openid offline_access"})
        ('openid', 'offline_access')
    """

    def __init__(self, mapping: ClaimsMapping | None = None) -> None:
        self._m = mapping or ClaimsMapping()

    def subject(self, claims: Claims) -> str:
        sub = claims.get(self._m.subject_claim)
        if not isinstance(sub, str) or not sub:
            raise AccessTokenInvalid("Missing subject claim")
        return sub

    def scope(self, claims: Claims) -> tuple[str, ...]:
        raw = claims.get(self._m.scope_claim)
        if not isinstance(raw, str):
            raise AccessTokenInvalid("Missing scope claim")
        return tuple(raw.split())

    def acr(self, claims: Claims) -> ACR:
        raw = claims.get(self._m.acr_claim)
        if not isinstance(raw, str):
            raise AccessTokenInvalid("Missing acr claim")
        try:
            return ACR(raw)
        except ValueError as e:
            raise AccessTokenInvalid(f"Unknown acr level {raw!r}") from e

    def permissions(self, claims: Claims) -> tuple[str, ...]:
        """Extract permissions from claims.

        Non-string items are dropped, so they can never satisfy a requirement.
        """
        raw = claims.get(self._m.permissions_claim)
        if not isinstance(raw, (list, tuple)):
            raise AccessTokenInvalid("Missing permissions claim")
        raw_seq = cast(Sequence[object], raw)
        return tuple(item for item in raw_seq if isinstance(item, str))


class AccessTokenAuthorizer:
    """Enforces scope, ACR and permission requirements.

    Requirements use all-of semantics: every required scope and every
    required permission must be granted, and the token ACR must rank at
    least as high as the required one.

    Args:
        claims: ClaimAccess instance for extracting authorization data.
    """

    def __init__(self, claims: ClaimAccess | None = None) -> None:
        self._claims = claims or ClaimAccess()

    def authorize(
        self,
        claims: Claims,
        access_token: str,
        *,
        scope: frozenset[str] = frozenset(),
        acr: ACR | None = None,
        permissions: frozenset[str] = frozenset(),
    ) -> AccessTokenInfo:
        """Check verified claims against requirements and build the token info.

        Raises:
            AccessTokenInvalid: A mandatory claim is missing or malformed.
            AccessTokenMissingScope: A required scope is not granted.
            AccessTokenACRTooLow: Token ACR ranks below ``acr``.
            AccessTokenMissingPermission: A required permission is not granted.
        """
        user_id = self._claims.subject(claims)
        token_scope = self._claims.scope(claims)
        token_acr = self._claims.acr(claims)
        token_permissions = self._claims.permissions(claims)

        if not scope.issubset(token_scope):
            raise AccessTokenMissingScope(sorted(scope.difference(token_scope)))

        if acr is not None and not token_acr.satisfies(acr):
            raise AccessTokenACRTooLow(f"{token_acr.value} < {acr.value}")

        if not permissions.issubset(token_permissions):
            raise AccessTokenMissingPermission(sorted(permissions.difference(token_permissions)))

        return AccessTokenInfo(
            id=user_id,
            scope=token_scope,
            acr=token_acr,
            permissions=token_permissions,
            access_token=access_token,
        )
