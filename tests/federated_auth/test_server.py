"""
Tests for the request authentication contract.

Uses a stub client so the outcome of token validation is controlled directly.
"""

from collections.abc import Sequence
from typing import Any, cast

import pytest

import federated_auth as m

USERINFO = {"sub": "u1", "email": "anne@bretagne.duchy"}


class StubRequest:
    def __init__(self, token: str | None = None):
        self.headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.cookies: dict[str, str] = {}


class StubClient:
    """Duck-typed OIDCClient.

    Tokens map to outcomes: ``GOOD`` validates, anything listed in
    ``errors`` raises the paired error.
    """

    def __init__(self):
        self.errors: dict[str, Exception] = {
            "BAD": m.AccessTokenInvalid("bad"),
            "EXPIRED": m.AccessTokenExpired("expired"),
        }
        self.validations: list[tuple[Any, ...]] = []
        self.userinfo_calls = 0

    def validate_access_token(
        self,
        access_token: str,
        required_scope: Sequence[str] | None = None,
        required_acr: m.ACR | str | None = None,
        required_permissions: Sequence[str] | None = None,
    ) -> m.AccessTokenInfo:
        self.validations.append((access_token, required_scope, required_acr, required_permissions))
        if access_token in self.errors:
            raise self.errors[access_token]
        if required_scope and "admin" in required_scope:
            raise m.AccessTokenMissingScope(["admin"])
        if required_permissions and "castles:create" in required_permissions:
            raise m.AccessTokenMissingPermission(["castles:create"])
        if required_acr is not None and m.ACR(required_acr) is m.ACR.LEVEL_ONE:
            raise m.AccessTokenACRTooLow("0 < 1")
        return m.AccessTokenInfo(
            id="u1",
            scope=("openid",),
            acr=m.ACR.LEVEL_ZERO,
            permissions=("castles:read",),
            access_token=access_token,
        )

    def userinfo(self, access_token: str) -> dict[str, Any]:
        self.userinfo_calls += 1
        return dict(USERINFO)


@pytest.fixture
def stub_client() -> StubClient:
    return StubClient()


def _authenticator(stub_client: StubClient, cache: Any = None) -> m.RequestAuthenticator:
    return m.RequestAuthenticator(cast(m.OIDCClient, stub_client), m.BearerExtractor(), cache)


class TestMissingOrInvalidToken:
    def test_missing_token(self, stub_client: StubClient):
        authenticate = _authenticator(stub_client).authenticate()
        with pytest.raises(m.Unauthorized):
            authenticate(StubRequest())

    def test_missing_token_optional(self, stub_client: StubClient):
        authenticate = _authenticator(stub_client).authenticate(optional=True)
        assert authenticate(StubRequest()) == m.AuthenticateRequestResult()

    @pytest.mark.parametrize("token", ["BAD", "EXPIRED"])
    def test_invalid_token(self, stub_client: StubClient, token: str):
        authenticate = _authenticator(stub_client).authenticate()
        with pytest.raises(m.Unauthorized):
            authenticate(StubRequest(token))

    @pytest.mark.parametrize("token", ["BAD", "EXPIRED"])
    def test_invalid_token_optional(self, stub_client: StubClient, token: str):
        authenticate = _authenticator(stub_client).authenticate(optional=True)
        result = authenticate(StubRequest(token))
        assert result.access_token_info is None
        assert result.user is None


class TestRequirements:
    @pytest.mark.parametrize(
        "requirements",
        [
            {"scope": ["admin"]},
            {"permissions": ["castles:create"]},
            {"acr": m.ACR.LEVEL_ONE},
        ],
    )
    def test_forbidden(self, stub_client: StubClient, requirements: dict[str, Any]):
        authenticate = _authenticator(stub_client).authenticate(**requirements)
        with pytest.raises(m.Forbidden):
            authenticate(StubRequest("GOOD"))

    def test_forbidden_even_if_optional(self, stub_client: StubClient):
        authenticate = _authenticator(stub_client).authenticate(optional=True, scope=["admin"])
        with pytest.raises(m.Forbidden):
            authenticate(StubRequest("GOOD"))

    def test_requirements_forwarded(self, stub_client: StubClient):
        authenticate = _authenticator(stub_client).authenticate(
            scope=["openid"], permissions=["castles:read"], acr="0"
        )
        authenticate(StubRequest("GOOD"))
        assert stub_client.validations == [("GOOD", ["openid"], "0", ["castles:read"])]


class TestUserResolution:
    def test_without_cache_user_is_none(self, stub_client: StubClient):
        result = _authenticator(stub_client).authenticate()(StubRequest("GOOD"))

        assert result.access_token_info is not None
        assert result.access_token_info.id == "u1"
        assert result.user is None
        assert stub_client.userinfo_calls == 0

    def test_cache_miss_fetches_and_stores(self, stub_client: StubClient):
        cache = m.InMemoryUserInfoCache()
        authenticate = _authenticator(stub_client, cache).authenticate()

        assert authenticate(StubRequest("GOOD")).user == USERINFO
        assert cache.get("u1") == USERINFO
        assert stub_client.userinfo_calls == 1

    def test_cache_hit(self, stub_client: StubClient):
        cache = m.InMemoryUserInfoCache()
        cache.set("u1", {"sub": "u1", "email": "cached@bretagne.duchy"})
        authenticate = _authenticator(stub_client, cache).authenticate()

        assert authenticate(StubRequest("GOOD")).user == {"sub": "u1", "email": "cached@bretagne.duchy"}
        assert stub_client.userinfo_calls == 0

    def test_refresh_bypasses_cache(self, stub_client: StubClient):
        cache = m.InMemoryUserInfoCache()
        cache.set("u1", {"sub": "u1", "email": "cached@bretagne.duchy"})
        authenticate = _authenticator(stub_client, cache).authenticate(refresh=True)

        assert authenticate(StubRequest("GOOD")).user == USERINFO
        assert cache.get("u1") == USERINFO
        assert stub_client.userinfo_calls == 1

    def test_userinfo_failure_propagates(self, stub_client: StubClient):
        def failing_userinfo(access_token: str) -> dict[str, Any]:
            raise m.RequestError(503, "unavailable")

        stub_client.userinfo = failing_userinfo  # type: ignore[method-assign]
        authenticate = _authenticator(stub_client, m.InMemoryUserInfoCache()).authenticate()

        with pytest.raises(m.RequestError):
            authenticate(StubRequest("GOOD"))

    def test_client_property(self, stub_client: StubClient):
        assert _authenticator(stub_client).client is stub_client
