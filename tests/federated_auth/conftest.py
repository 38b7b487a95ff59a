import json
import time
from collections.abc import Callable
from typing import Any, cast

import jwt
import pytest
import requests
from authlib.jose import JsonWebEncryption, JsonWebKey
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import Flask
from jwt.algorithms import RSAAlgorithm

import federated_auth as m

from .fakes import (
    CLIENT_ID,
    CLIENT_SECRET,
    DISCOVERY_URL,
    HOSTNAME,
    JWKS_URL,
    OPENID_CONFIGURATION,
    USER_ID,
    FakeRedis,
    FakeSession,
)


@pytest.fixture()
def app():
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.secret_key = "test-secret-key"
    return app


@pytest.fixture(scope="session")
def signature_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def encryption_private_jwk() -> dict[str, Any]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    jwk = json.loads(RSAAlgorithm.to_jwk(key))
    jwk.update({"kid": "tests-enc", "use": "enc", "alg": "RSA-OAEP-256"})
    return jwk


@pytest.fixture(scope="session")
def jwks(signature_key: rsa.RSAPrivateKey, encryption_private_jwk: dict[str, Any]) -> dict[str, Any]:
    sig = json.loads(RSAAlgorithm.to_jwk(signature_key.public_key()))
    sig.update({"kid": "tests-sig", "use": "sig"})
    enc_public = {k: encryption_private_jwk[k] for k in ("kty", "n", "e", "kid", "use", "alg")}
    return {"keys": [sig, enc_public]}


@pytest.fixture(scope="session")
def generate_token(
    signature_key: rsa.RSAPrivateKey, encryption_private_jwk: dict[str, Any]
) -> Callable[..., str]:
    """
    Factory fixture signing (and optionally encrypting) tokens.

    Usage in tests:
        token = generate_token(claims={"scope": "openid"}, exp=0)
    """

    def _make(
        *,
        encrypt: bool = False,
        claims: dict[str, Any] | None = None,
        exp: int | None = None,
        headers: dict[str, Any] | None = None,
        jwe_header: dict[str, str] | None = None,
    ) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            "email": "anne@bretagne.duchy",
            "sub": USER_ID,
            "iss": HOSTNAME,
            "aud": [CLIENT_ID],
            "iat": now,
            "exp": now + 3600 if exp is None else exp,
        }
        payload.update(claims or {})
        signed = jwt.encode(payload, signature_key, algorithm="RS256", headers=headers)

        if not encrypt:
            return signed

        public = {k: encryption_private_jwk[k] for k in ("kty", "n", "e")}
        protected = jwe_header or {"alg": "RSA-OAEP-256", "enc": "A256CBC-HS512"}
        encrypted = JsonWebEncryption(algorithms=[protected["alg"], protected["enc"]]).serialize_compact(
            protected,
            signed.encode("utf-8"),
            JsonWebKey.import_key(public),
        )
        return encrypted.decode("ascii")

    return _make


@pytest.fixture
def access_token(generate_token: Callable[..., str]) -> str:
    return generate_token(claims={"scope": "openid", "acr": "0", "permissions": []})


@pytest.fixture
def fake_session(jwks: dict[str, Any]) -> FakeSession:
    session = FakeSession()
    session.add("GET", DISCOVERY_URL, OPENID_CONFIGURATION)
    session.add("GET", JWKS_URL, jwks)
    return session


@pytest.fixture
def client(fake_session: FakeSession) -> m.OIDCClient:
    return m.OIDCClient(
        HOSTNAME,
        CLIENT_ID,
        CLIENT_SECRET,
        session=cast(requests.Session, fake_session),
    )


@pytest.fixture
def encrypted_client(
    fake_session: FakeSession, encryption_private_jwk: dict[str, Any]
) -> m.OIDCClient:
    return m.OIDCClient(
        HOSTNAME,
        CLIENT_ID,
        CLIENT_SECRET,
        encryption_key=json.dumps(encryption_private_jwk),
        session=cast(requests.Session, fake_session),
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
