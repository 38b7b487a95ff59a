"""Hashing and PKCE helpers.

Implements the ``CryptoHelper`` protocol on top of ``hashlib`` and PyJWT's
base64url utilities.

Validation hashes (``c_hash`` / ``at_hash``)
--------------------------------------------
The hash is the left half of the digest of the ASCII value, base64url encoded
without padding. The digest function follows the ID token signing algorithm:
``*256`` → SHA-256, ``*384`` → SHA-384, ``*512`` → SHA-512. With the default
``RS256`` this is "first half of the SHA-256 digest".
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Final

from jwt.utils import base64url_encode

from .errors import CryptoHelperError
from .protocols import CodeChallengeMethod

CODE_VERIFIER_BYTES: Final[int] = 96
"""Random bytes drawn for a PKCE code verifier, before encoding."""

_HASH_BY_SUFFIX: Final[dict[str, str]] = {
    "256": "sha256",
    "384": "sha384",
    "512": "sha512",
}


def _digest_name(alg: str) -> str:
    if alg == "EdDSA":
        return "sha512"
    name = _HASH_BY_SUFFIX.get(alg[-3:])
    if name is None:
        raise CryptoHelperError(f"No validation hash defined for algorithm {alg!r}")
    return name


class HashlibCryptoHelper:
    """Default ``CryptoHelper`` implementation.

    Example:
        ```python
        helper = HashlibCryptoHelper()
        verifier = helper.generate_code_verifier()
        challenge = helper.get_code_challenge(verifier, "S256")
        ```
    """

    def get_validation_hash(self, value: str, alg: str = "RS256") -> str:
        digest = hashlib.new(_digest_name(alg), value.encode("utf-8")).digest()
        return base64url_encode(digest[: len(digest) // 2]).decode("ascii")

    def is_valid_hash(self, value: str, hash: str, alg: str = "RS256") -> bool:
        return hmac.compare_digest(self.get_validation_hash(value, alg), hash)

    def generate_code_verifier(self) -> str:
        return base64url_encode(secrets.token_bytes(CODE_VERIFIER_BYTES)).decode("ascii")

    def get_code_challenge(self, code: str, method: CodeChallengeMethod) -> str:
        if method == "plain":
            return code

        if method == "S256":
            digest = hashlib.sha256(code.encode("utf-8")).digest()
            return base64url_encode(digest).decode("ascii")

        raise CryptoHelperError(
            f'Invalid method "{method}". Allowed methods are: plain, S256'
        )
