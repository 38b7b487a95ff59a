"""Client configuration loaded from the environment.

Values are read from ``os.environ`` after loading a ``.env`` file with
python-dotenv, so local development can keep secrets out of the code:

    OIDC_BASE_URL=https://example.fief.dev
    OIDC_CLIENT_ID=...
    OIDC_CLIENT_SECRET=...
    OIDC_ENCRYPTION_KEY={"kty": "RSA", ...}
    OIDC_LEEWAY=10
    OIDC_TIMEOUT=5
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv


@dataclass(frozen=True, slots=True)
class AuthSettings:
    """Settings needed to build an ``OIDCClient``.

    Attributes:
        base_url: Identity provider base URL (discovery lives under it).
        client_id: OAuth2 client id; also the expected ID token audience.
        client_secret: Optional client secret for confidential clients.
        encryption_key: Optional private JWK (JSON) to decrypt ID tokens.
        algorithms: Allowed signing algorithms.
        leeway: Clock skew tolerance in seconds.
        timeout: HTTP timeout in seconds.
    """

    base_url: str
    client_id: str
    client_secret: str | None = None
    encryption_key: str | None = None
    algorithms: tuple[str, ...] = ("RS256",)
    leeway: int = 0
    timeout: float = 10.0

    @classmethod
    def from_env(cls, prefix: str = "OIDC_", *, dotenv: bool = True) -> AuthSettings:
        """Build settings from environment variables.

        Args:
            prefix: Variable name prefix.
            dotenv: Load the nearest ``.env`` file from the working directory
                first (existing variables win).

        Raises:
            ValueError: If the base URL or client id is missing, or a numeric
                value cannot be parsed.
        """
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))

        def _get(name: str) -> str | None:
            value = os.environ.get(f"{prefix}{name}")
            return value or None

        base_url = _get("BASE_URL")
        client_id = _get("CLIENT_ID")
        if not base_url or not client_id:
            raise ValueError(
                f"Missing required environment variables {prefix}BASE_URL / {prefix}CLIENT_ID"
            )

        algorithms = _get("ALGORITHMS")
        return cls(
            base_url=base_url,
            client_id=client_id,
            client_secret=_get("CLIENT_SECRET"),
            encryption_key=_get("ENCRYPTION_KEY"),
            algorithms=tuple(algorithms.split(",")) if algorithms else ("RS256",),
            leeway=int(_get("LEEWAY") or 0),
            timeout=float(_get("TIMEOUT") or 10.0),
        )
