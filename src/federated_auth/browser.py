"""Browser-style session orchestration.

``BrowserAuth`` drives the interactive login of one user agent session:

1. ``redirect_to_login``: new PKCE verifier, stored; redirect to the
   authorization URL with its S256 challenge.
2. ``auth_callback``: parse the callback URL, exchange the code once, store
   tokens and user information.
3. ``refresh_userinfo`` / ``logout``.

Storage and navigation are injected (``AuthStorage`` and ``Navigator``), so
the same orchestration runs over a Flask session, an in-memory dict in
tests, or any other host primitive.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, urlsplit

from .errors import AuthorizeError, NotAuthenticatedError

if TYPE_CHECKING:
    from .client import OIDCClient
    from .models import TokenResponse
    from .protocols import AuthStorage, Navigator, UserInfo

logger = logging.getLogger(__name__)


class InMemoryAuthStorage:
    """``AuthStorage`` kept in a plain dict.

    Suitable for tests and single-user tools (CLIs, desktop helpers).
    """

    def __init__(self) -> None:
        self._store: dict[str, Any] = {}

    def get_userinfo(self) -> UserInfo | None:
        return self._store.get("userinfo")

    def set_userinfo(self, userinfo: UserInfo) -> None:
        self._store["userinfo"] = dict(userinfo)

    def get_token_info(self) -> TokenResponse | None:
        return self._store.get("token_info")

    def set_token_info(self, token_info: TokenResponse) -> None:
        self._store["token_info"] = token_info

    def get_code_verifier(self) -> str | None:
        return self._store.get("code_verifier")

    def set_code_verifier(self, code: str) -> None:
        self._store["code_verifier"] = code

    def clear_code_verifier(self) -> None:
        self._store.pop("code_verifier", None)

    def clear_session(self) -> None:
        self._store.clear()


class BrowserAuth:
    """Login, callback and logout for one user agent session.

    Attributes:
        _pending: Authorization codes whose exchange is in flight. A code is
            exchanged at most once per instance.
    """

    def __init__(
        self,
        client: OIDCClient,
        navigator: Navigator,
        storage: AuthStorage | None = None,
    ) -> None:
        self._client = client
        self._navigator = navigator
        self._storage: AuthStorage = storage if storage is not None else InMemoryAuthStorage()
        self._pending: set[str] = set()
        self._pending_lock = threading.Lock()

    def is_authenticated(self) -> bool:
        return self._storage.get_token_info() is not None

    def get_userinfo(self) -> UserInfo | None:
        return self._storage.get_userinfo()

    def get_token_info(self) -> TokenResponse | None:
        return self._storage.get_token_info()

    def redirect_to_login(
        self,
        redirect_uri: str,
        *,
        state: str | None = None,
        scope: Iterable[str] | None = None,
        lang: str | None = None,
        extras_params: Mapping[str, str] | None = None,
    ) -> None:
        """Start a login: store a fresh PKCE verifier and redirect to the provider.

        Args:
            redirect_uri: Callback URL registered for the client.
            state: Opaque value echoed back on the callback.
            scope: Requested scopes. Defaults to ``["openid"]``.
            lang: Preferred UI locale.
            extras_params: Provider-specific authorization parameters.
        """
        crypto = self._client.crypto
        code_verifier = crypto.generate_code_verifier()
        code_challenge = crypto.get_code_challenge(code_verifier, "S256")
        self._storage.set_code_verifier(code_verifier)

        auth_url = self._client.get_auth_url(
            redirect_uri,
            state=state,
            scope=scope if scope is not None else ["openid"],
            code_challenge=code_challenge,
            code_challenge_method="S256",
            lang=lang,
            extras_params=extras_params,
        )
        self._navigator.redirect(auth_url)

    def auth_callback(self, redirect_uri: str) -> None:
        """Complete a login from the current callback URL.

        A code already being exchanged by this instance is ignored, so a
        re-entrant or duplicate callback cannot spend a single-use code twice.

        Raises:
            AuthorizeError: The provider reported an error, or no code was given.
            RequestError: Token endpoint answered non-2xx.
            IdTokenInvalid: The ID token failed verification.
        """
        params = parse_qs(urlsplit(self._navigator.current_url()).query)
        error = params.get("error", [None])[0]
        error_description = params.get("error_description", [None])[0]
        code = params.get("code", [None])[0]

        if error is not None:
            logger.warning("Authorization callback error: %s", error)
            raise AuthorizeError(error, error_description)
        if code is None:
            raise AuthorizeError("missing_code")

        with self._pending_lock:
            if code in self._pending:
                logger.debug("Ignoring callback for a code already being exchanged")
                return
            self._pending.add(code)

        try:
            code_verifier = self._storage.get_code_verifier()
            self._storage.clear_code_verifier()

            tokens, userinfo = self._client.auth_callback(code, redirect_uri, code_verifier)

            self._storage.set_token_info(tokens)
            self._storage.set_userinfo(userinfo)
        finally:
            with self._pending_lock:
                self._pending.discard(code)

    def refresh_userinfo(self) -> UserInfo:
        """Fetch fresh user information with the stored access token.

        Raises:
            NotAuthenticatedError: No session is stored.
        """
        token_info = self._storage.get_token_info()
        if token_info is None:
            raise NotAuthenticatedError("No session")

        userinfo = self._client.userinfo(token_info.access_token)
        self._storage.set_userinfo(userinfo)
        return userinfo

    def logout(self, redirect_uri: str) -> None:
        """Clear the local session and redirect to the provider logout page."""
        self._storage.clear_session()
        self._navigator.redirect(self._client.get_logout_url(redirect_uri))
