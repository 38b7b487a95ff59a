"""Value types exchanged with the identity provider.

- ``TokenResponse``: the token bundle returned by the token endpoint.
- ``AccessTokenInfo``: the result of a successful access token validation.
- ``ACR``: authentication context levels and their fixed ordering.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any, Final


class ACR(StrEnum):
    """Authentication Context Class Reference levels issued by the provider.

    Levels are ordered by strength; string comparison is meaningless, use
    ``ACR.rank`` or the comparison operators defined here.
    """

    LEVEL_ZERO = "0"
    """Session reused, no fresh credential check."""

    LEVEL_ONE = "1"
    """Fresh authentication with a password or equivalent."""

    @property
    def rank(self) -> int:
        return ACR_LEVELS_ORDER.index(self)

    def satisfies(self, required: ACR) -> bool:
        """Return True if this level is at least as strong as ``required``."""
        return self.rank >= required.rank


ACR_LEVELS_ORDER: Final[tuple[ACR, ...]] = (ACR.LEVEL_ZERO, ACR.LEVEL_ONE)
"""Provider-defined ordering of ACR levels, weakest first."""


@dataclass(frozen=True, slots=True)
class TokenResponse:
    """Token bundle returned by the token endpoint.

    Immutable once received. A refresh or a new login replaces it wholesale.
    """

    access_token: str
    id_token: str
    token_type: str
    expires_in: int | None = None
    refresh_token: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TokenResponse:
        """Build a TokenResponse from the token endpoint JSON body.

        Raises:
            KeyError: If ``access_token``, ``id_token`` or ``token_type`` is missing.
        """
        expires_in = data.get("expires_in")
        return cls(
            access_token=data["access_token"],
            id_token=data["id_token"],
            token_type=data["token_type"],
            expires_in=int(expires_in) if expires_in is not None else None,
            refresh_token=data.get("refresh_token"),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.refresh_token is None:
            data.pop("refresh_token")
        return data


@dataclass(frozen=True, slots=True)
class AccessTokenInfo:
    """Verified information about an access token.

    Only built by ``TokenVerifier`` after signature, expiry and claim checks
    succeeded, so every field traces back to a verified claim.

    Attributes:
        id: Subject (user id), from the ``sub`` claim.
        scope: Granted scopes, from the space separated ``scope`` claim.
        acr: Authentication level, from the ``acr`` claim.
        permissions: Granted permissions, from the ``permissions`` claim.
        access_token: The raw token, to call the provider on the user's behalf.
    """

    id: str
    scope: tuple[str, ...]
    acr: ACR
    permissions: tuple[str, ...] = field(default_factory=tuple)
    access_token: str = field(default="", repr=False)

    def safe_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly view without the raw access token."""
        return {
            "id": self.id,
            "scope": list(self.scope),
            "acr": self.acr.value,
            "permissions": list(self.permissions),
        }
