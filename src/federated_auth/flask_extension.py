"""Flask extension for OpenID-Connect authentication and authorization.

This module is the Flask host adapter. It plugs Flask's request, session and
response primitives into the environment-agnostic pieces of the package.

Key Components:
- AuthExtension: Decorator class protecting routes via RequestAuthenticator
- FlaskSessionStorage: AuthStorage over ``flask.session``
- FlaskNavigator: Navigator over ``flask.request`` and ``redirect``

Security Model:
1. Extract token from request (header or cookie)
2. Verify token signature, expiry and required scope / permissions / ACR
3. Store the result in ``flask.g.access_token_info`` and ``flask.g.user``
4. Convert auth errors to appropriate HTTP responses (401/403)
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import wraps
from typing import TYPE_CHECKING, Any, Final

from flask import Flask, abort, g, redirect, request, session

from .errors import AuthError
from .models import TokenResponse

if TYPE_CHECKING:
    from .models import ACR
    from .protocols import UserInfo, ViewFunc
    from .server import RequestAuthenticator

_EXT_KEY: Final[str] = "federated_auth"
"""Flask extensions registry key for AuthExtension."""


class AuthExtension:
    """
    Flask decorator glue for request authentication.

    Responsibilities:
    - Run the RequestAuthenticator on the current request
    - Store the result in `flask.g`
    - Convert domain errors to HTTP responses (abort)

    Usage:
        auth = AuthExtension(RequestAuthenticator(client, BearerExtractor()))

        @app.get("/admin")
        @auth.require(permissions=["castles:create"])
        def admin(): ...
    """

    def __init__(self, authenticator: RequestAuthenticator | None = None) -> None:
        self._authenticator = authenticator

    def init_app(
        self,
        app: Flask,
        *,
        authenticator: RequestAuthenticator | None = None,
    ) -> None:
        """Register the extension on ``app``.

        Args:
            app (Flask): The Flask application instance.
            authenticator (RequestAuthenticator | None, optional): Replaces the
                authenticator given at construction. Defaults to None.
        """
        if authenticator is not None:
            self._authenticator = authenticator
        if self._authenticator is None:
            raise RuntimeError("AuthExtension needs a RequestAuthenticator")

        app.extensions[_EXT_KEY] = self

    def require(
        self,
        *,
        optional: bool = False,
        scope: Sequence[str] = (),
        permissions: Sequence[str] = (),
        acr: ACR | str | None = None,
        refresh: bool = False,
    ):
        """Decorator to protect Flask routes.

        Error mapping:
        - ``Unauthorized`` -> HTTP 401
        - ``Forbidden``    -> HTTP 403
        - ``RequestError`` -> HTTP 502 (provider failed while fetching the user)

        Side Effects:
            - Writes ``g.access_token_info`` and ``g.user`` before calling the view.
            - May terminate request handling early via ``flask.abort``.
        """

        def decorator(view: ViewFunc) -> ViewFunc:
            authenticate = None

            @wraps(view)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                nonlocal authenticate
                if authenticate is None:
                    if self._authenticator is None:
                        raise RuntimeError("AuthExtension is not initialized")
                    authenticate = self._authenticator.authenticate(
                        optional=optional,
                        scope=scope,
                        permissions=permissions,
                        acr=acr,
                        refresh=refresh,
                    )

                g.access_token_info = None
                g.user = None
                try:
                    result = authenticate(request)
                except AuthError as e:
                    abort(e.error_code, description=e.description)

                g.access_token_info = result.access_token_info
                g.user = result.user
                return view(*args, **kwargs)

            return wrapper

        return decorator

    def current_user(self) -> dict[str, Any]:
        """Return the user and token info of an optionally authenticated request.

        Meant to back a ``/me`` style endpoint for front-ends; the raw access
        token is never included.
        """

        @self.require(optional=True)
        def _current_user() -> dict[str, Any]:
            info = g.access_token_info
            return {
                "userinfo": dict(g.user) if g.user is not None else None,
                "access_token_info": info.safe_dict() if info is not None else None,
            }

        return _current_user()


class FlaskSessionStorage:
    """``AuthStorage`` kept in the signed Flask session cookie.

    Requires ``app.secret_key``. Keys are namespaced by ``prefix``.
    """

    def __init__(self, prefix: str = "federated_auth") -> None:
        self._userinfo_key = f"{prefix}_userinfo"
        self._token_info_key = f"{prefix}_tokeninfo"
        self._code_verifier_key = f"{prefix}_codeverifier"

    def get_userinfo(self) -> UserInfo | None:
        return session.get(self._userinfo_key)

    def set_userinfo(self, userinfo: UserInfo) -> None:
        session[self._userinfo_key] = dict(userinfo)

    def get_token_info(self) -> TokenResponse | None:
        value = session.get(self._token_info_key)
        if not value:
            return None
        return TokenResponse.from_dict(value)

    def set_token_info(self, token_info: TokenResponse) -> None:
        session[self._token_info_key] = token_info.to_dict()

    def get_code_verifier(self) -> str | None:
        return session.get(self._code_verifier_key) or None

    def set_code_verifier(self, code: str) -> None:
        session[self._code_verifier_key] = code

    def clear_code_verifier(self) -> None:
        session.pop(self._code_verifier_key, None)

    def clear_session(self) -> None:
        for key in (self._userinfo_key, self._token_info_key, self._code_verifier_key):
            session.pop(key, None)


class FlaskNavigator:
    """``Navigator`` over the current Flask request.

    ``redirect`` aborts the request with a 302 response, so it must run
    inside a view; the view does not return normally.
    """

    def current_url(self) -> str:
        return request.url

    def redirect(self, url: str) -> None:
        abort(redirect(url))
