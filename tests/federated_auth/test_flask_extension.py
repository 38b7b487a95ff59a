"""
Tests for the AuthExtension Flask integration.

Tests the decorator-based request authentication, the session storage and the
navigator against real signed tokens.
"""

import json
from collections.abc import Callable
from typing import cast
from urllib.parse import parse_qs, urlsplit

import pytest
import requests
from cryptography.hazmat.primitives.asymmetric import ec
from flask import Flask, g
from jwt.algorithms import ECAlgorithm

import federated_auth as m

from .fakes import (
    CLIENT_ID,
    DISCOVERY_URL,
    HOSTNAME,
    JWKS_URL,
    OPENID_CONFIGURATION,
    TOKEN_URL,
    USER_ID,
    USERINFO_URL,
    FakeSession,
)


@pytest.fixture
def auth(client: m.OIDCClient) -> m.AuthExtension:
    return m.AuthExtension(m.RequestAuthenticator(client, m.BearerExtractor()))


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestAuthExtensionBasics:
    """Test basic AuthExtension functionality."""

    def test_missing_token_returns_401(self, app: Flask, auth: m.AuthExtension):
        @app.get("/x")
        @auth.require()
        def x():  # type: ignore
            return {"ok": True}

        r = app.test_client().get("/x")
        assert r.status_code == 401

    def test_invalid_token_returns_401(self, app: Flask, auth: m.AuthExtension):
        @app.get("/x")
        @auth.require()
        def x():  # type: ignore
            return {"ok": True}

        r = app.test_client().get("/x", headers=_bearer("BAD"))
        assert r.status_code == 401

    def test_expired_token_returns_401(
        self, app: Flask, auth: m.AuthExtension, generate_token: Callable[..., str]
    ):
        @app.get("/x")
        @auth.require()
        def x():  # type: ignore
            return {"ok": True}

        token = generate_token(claims={"scope": "openid", "acr": "0", "permissions": []}, exp=0)
        r = app.test_client().get("/x", headers=_bearer(token))
        assert r.status_code == 401

    def test_valid_token_sets_g(self, app: Flask, auth: m.AuthExtension, access_token: str):
        @app.get("/x")
        @auth.require(scope=["openid"])
        def x():  # type: ignore
            assert g.user is None
            return {"sub": g.access_token_info.id, "acr": g.access_token_info.acr.value}

        r = app.test_client().get("/x", headers=_bearer(access_token))
        assert r.status_code == 200
        assert r.get_json() == {"sub": USER_ID, "acr": "0"}

    def test_init_app_registers_extension(self, app: Flask, auth: m.AuthExtension):
        auth.init_app(app)
        assert app.extensions["federated_auth"] is auth

    def test_init_app_without_authenticator(self, app: Flask):
        with pytest.raises(RuntimeError):
            m.AuthExtension().init_app(app)


class TestAuthorization:
    @pytest.mark.parametrize(
        "requirements",
        [
            {"scope": ["admin"]},
            {"permissions": ["castles:create"]},
            {"acr": m.ACR.LEVEL_ONE},
        ],
    )
    def test_unmet_requirement_returns_403(
        self, app: Flask, auth: m.AuthExtension, access_token: str, requirements: dict
    ):
        @app.get("/x")
        @auth.require(**requirements)
        def x():  # type: ignore
            return {"ok": True}

        r = app.test_client().get("/x", headers=_bearer(access_token))
        assert r.status_code == 403

    def test_optional_without_token(self, app: Flask, auth: m.AuthExtension):
        @app.get("/x")
        @auth.require(optional=True)
        def x():  # type: ignore
            return {"authenticated": g.access_token_info is not None}

        r = app.test_client().get("/x")
        assert r.status_code == 200
        assert r.get_json() == {"authenticated": False}


class TestUser:
    def test_user_from_provider_then_cache(
        self,
        app: Flask,
        client: m.OIDCClient,
        fake_session: FakeSession,
        access_token: str,
    ):
        fake_session.add("GET", USERINFO_URL, {"sub": USER_ID, "email": "anne@bretagne.duchy"})
        auth = m.AuthExtension(
            m.RequestAuthenticator(client, m.BearerExtractor(), m.InMemoryUserInfoCache())
        )

        @app.get("/x")
        @auth.require()
        def x():  # type: ignore
            return {"email": g.user["email"]}

        c = app.test_client()
        assert c.get("/x", headers=_bearer(access_token)).get_json() == {"email": "anne@bretagne.duchy"}
        assert c.get("/x", headers=_bearer(access_token)).get_json() == {"email": "anne@bretagne.duchy"}
        assert len(fake_session.calls_to("GET", USERINFO_URL)) == 1

    def test_provider_failure_returns_502(
        self,
        app: Flask,
        client: m.OIDCClient,
        fake_session: FakeSession,
        access_token: str,
    ):
        fake_session.add("GET", USERINFO_URL, "unavailable", status_code=503)
        auth = m.AuthExtension(
            m.RequestAuthenticator(client, m.BearerExtractor(), m.InMemoryUserInfoCache())
        )

        @app.get("/x")
        @auth.require()
        def x():  # type: ignore
            return {"ok": True}

        r = app.test_client().get("/x", headers=_bearer(access_token))
        assert r.status_code == 502

    def test_current_user(self, app: Flask, auth: m.AuthExtension, access_token: str):
        @app.get("/me")
        def me():  # type: ignore
            return auth.current_user()

        c = app.test_client()
        assert c.get("/me").get_json() == {"userinfo": None, "access_token_info": None}

        body = c.get("/me", headers=_bearer(access_token)).get_json()
        assert body["userinfo"] is None
        assert body["access_token_info"] == {
            "id": USER_ID,
            "scope": ["openid"],
            "acr": "0",
            "permissions": [],
        }
        assert access_token not in str(body)


class TestFlaskSessionStorage:
    def test_values(self, app: Flask):
        storage = m.FlaskSessionStorage()

        with app.test_request_context("/"):
            assert storage.get_token_info() is None
            assert storage.get_userinfo() is None
            assert storage.get_code_verifier() is None

            tokens = m.TokenResponse("A", "I", "bearer", expires_in=3600, refresh_token="R")
            storage.set_token_info(tokens)
            storage.set_userinfo({"sub": USER_ID})
            storage.set_code_verifier("VERIFIER")

            assert storage.get_token_info() == tokens
            assert storage.get_userinfo() == {"sub": USER_ID}
            assert storage.get_code_verifier() == "VERIFIER"

            storage.clear_code_verifier()
            assert storage.get_code_verifier() is None

            storage.clear_session()
            assert storage.get_token_info() is None
            assert storage.get_userinfo() is None


class TestBrowserFlowOverFlask:
    """Login and callback across two requests sharing the session cookie."""

    def test_login_then_callback(
        self,
        app: Flask,
        client: m.OIDCClient,
        fake_session: FakeSession,
        access_token: str,
        generate_token: Callable[..., str],
    ):
        fake_session.add(
            "POST",
            TOKEN_URL,
            {"access_token": access_token, "id_token": generate_token(), "token_type": "bearer"},
        )
        redirect_uri = "http://localhost/callback"

        def browser() -> m.BrowserAuth:
            return m.BrowserAuth(client, m.FlaskNavigator(), m.FlaskSessionStorage())

        @app.get("/login")
        def login():  # type: ignore
            browser().redirect_to_login(redirect_uri)
            return {"unreachable": True}

        @app.get("/callback")
        def callback():  # type: ignore
            b = browser()
            b.auth_callback(redirect_uri)
            return {"userinfo": dict(b.get_userinfo() or {})}

        c = app.test_client()

        r = c.get("/login")
        assert r.status_code == 302
        location = urlsplit(r.headers["Location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == f"{HOSTNAME}/authorize"
        assert parse_qs(location.query)["code_challenge_method"] == ["S256"]

        r = c.get("/callback?code=CODE")
        assert r.status_code == 200
        assert r.get_json()["userinfo"]["sub"] == USER_ID

        (call,) = fake_session.calls_to("POST", TOKEN_URL)
        assert call["data"]["redirect_uri"] == redirect_uri
        assert len(call["data"]["code_verifier"]) == 128


class TestForeignSigningKeys:
    def test_only_ec_keys_returns_401(self, app: Flask, access_token: str):
        session = FakeSession()
        session.add("GET", DISCOVERY_URL, OPENID_CONFIGURATION)
        public = ec.generate_private_key(ec.SECP256R1()).public_key()
        session.add("GET", JWKS_URL, {"keys": [{**json.loads(ECAlgorithm.to_jwk(public)), "use": "sig"}]})
        client = m.OIDCClient(HOSTNAME, CLIENT_ID, session=cast(requests.Session, session))
        auth = m.AuthExtension(m.RequestAuthenticator(client, m.BearerExtractor()))

        @app.get("/x")
        @auth.require()
        def x():  # type: ignore
            return {"ok": True}

        r = app.test_client().get("/x", headers=_bearer(access_token))
        assert r.status_code == 401
