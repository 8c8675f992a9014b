"""Authentication middleware, login resource and request authentication."""

from __future__ import annotations

import base64
import binascii
import typing
from http import HTTPStatus

import falcon

from .repository import load_user_id
from .session import SESSION_COOKIE

if typing.TYPE_CHECKING:
    import uuid

    from .repository import SessionFactory
    from .session import SessionManager

__all__ = [
    "AuthMiddleware",
    "LoginResource",
    "authenticate_request",
    "require_user_id",
]

PUBLIC_PATHS = frozenset({"/health", "/login"})


class AuthMiddleware:
    """Resolve the session cookie into ``req.context["user"]``.

    Requests without a valid cookie are rejected with 401, except on public
    paths and on *in_band_paths*. The latter are streaming endpoints that
    report authentication failures inside the response body, so they get
    ``req.context["user"] = None`` instead.
    """

    def __init__(
        self,
        session: SessionManager,
        *,
        in_band_paths: typing.Iterable[str] = (),
    ) -> None:
        """Create middleware with a session manager.

        Parameters
        ----------
        session : SessionManager
            Object used to verify signed session cookies.
        in_band_paths : Iterable[str]
            Paths whose resources handle a missing identity themselves.
        """
        self._session = session
        self._in_band_paths = frozenset(in_band_paths)

    def _user_from_cookie(self, req: falcon.Request) -> str | None:
        cookie = req.cookies.get(SESSION_COOKIE)
        if not cookie:
            return None
        return self._session.verify_cookie(typing.cast("str", cookie))

    async def process_request(self, req: falcon.Request, resp: falcon.Response) -> None:
        """Validate the session cookie for HTTP requests.

        Raises
        ------
        falcon.HTTPUnauthorized
            If the cookie is missing or invalid on a protected path.
        """
        if req.path in PUBLIC_PATHS:
            return

        user = self._user_from_cookie(req)
        if user is None and req.path not in self._in_band_paths:
            raise falcon.HTTPUnauthorized()

        req.context["user"] = user


async def authenticate_request(
    session_factory: SessionFactory, req: falcon.Request
) -> uuid.UUID | None:
    """Return the account id of the caller, or ``None`` if unknown.

    The session subject set by :class:`AuthMiddleware` must also match a
    stored account.
    """
    user_sub = typing.cast("str | None", req.context.get("user"))
    if not user_sub:
        return None
    return await load_user_id(session_factory, user_sub)


async def require_user_id(
    session_factory: SessionFactory, req: falcon.Request
) -> uuid.UUID:
    """Like :func:`authenticate_request`, but raise 401 when unknown."""
    user_id = await authenticate_request(session_factory, req)
    if user_id is None:
        raise falcon.HTTPUnauthorized(description="invalid or missing user record")
    return user_id


class LoginResource:
    """Authenticate via Basic Auth and set a signed session cookie."""

    def __init__(self, session: SessionManager, user: str, password: str) -> None:
        """Initialize the resource with credentials and session manager."""
        self._session = session
        self._user = user
        self._password = password

    async def on_post(self, req: falcon.Request, resp: falcon.Response) -> None:
        """Check the ``Authorization`` header and issue a session cookie.

        Raises
        ------
        falcon.HTTPUnauthorized
            If credentials are missing or invalid.
        """
        auth_header: str = req.get_header("Authorization") or ""
        prefix = "Basic "
        if not auth_header.startswith(prefix):
            raise falcon.HTTPUnauthorized()

        try:
            decoded = base64.b64decode(auth_header[len(prefix) :].encode()).decode()
            username, password = decoded.split(":", 1)
        except (binascii.Error, UnicodeDecodeError, ValueError):
            raise falcon.HTTPUnauthorized() from None

        if username != self._user or password != self._password:
            raise falcon.HTTPUnauthorized()

        resp.set_cookie(
            SESSION_COOKIE,
            self._session.create_cookie(username),
            max_age=self._session.timeout,
            http_only=True,
            same_site="Lax",
        )
        resp.status = HTTPStatus.OK
        resp.media = {"status": "logged_in"}
