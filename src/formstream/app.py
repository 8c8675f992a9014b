"""Application factory for the form completion API."""

from __future__ import annotations

import base64
import os
import typing

import falcon
import msgspec
from falcon import asgi

if typing.TYPE_CHECKING:  # pragma: no cover - for type checking only
    from .repository import SessionFactory

from .auth import AuthMiddleware, LoginResource
from .completion import CompleteFormFunc
from .completion import complete_form as default_complete_form
from .crypto import KeyCipher
from .deepseek_service import DeepSeekService
from .errors import handle_http_error, handle_unexpected_error
from .form_stream import FormStreamConfig
from .msgspec_support import (
    AsyncMsgspecMiddleware,
    handle_msgspec_validation_error,
    json_handler,
)
from .resources import (
    ApiKeyResource,
    FormCollectionResource,
    FormCompletionStreamResource,
    FormResource,
    HealthResource,
    TemplateResource,
)
from .session import SessionManager

COMPLETE_STREAM_PATH = "/api/forms/complete-stream"


def create_app(
    *,
    session_secret: str | None = None,
    session_timeout: int | None = None,
    login_user: str | None = None,
    login_password: str | None = None,
    key_cipher: KeyCipher | None = None,
    deepseek_service: DeepSeekService | None = None,
    db_session_factory: SessionFactory | None = None,
    complete_form_func: CompleteFormFunc = default_complete_form,
) -> asgi.App:
    """Configure and return the Falcon ASGI app.

    Parameters
    ----------
    session_secret:
        Secret used to sign session cookies. If omitted, ``SESSION_SECRET``
        from the environment is used or a random value is generated.
    session_timeout:
        Cookie expiration in seconds. Defaults to ``SESSION_TIMEOUT`` from the
        environment or ``3600`` seconds.
    login_user:
        Expected Basic Auth username. Defaults to ``LOGIN_USER`` or ``admin``.
    login_password:
        Expected Basic Auth password. Defaults to ``LOGIN_PASSWORD`` or
        ``adminpass``.
    key_cipher:
        Cipher for stored API keys. Defaults to one built from
        ``API_KEY_SECRET``.
    deepseek_service:
        Provider client cache. Defaults to one built from ``DEEPSEEK_*``
        variables.
    db_session_factory:
        Callable that returns an ``AsyncSession``. Required for database access.
    complete_form_func:
        Provider used to produce completion fragments.
    """
    if db_session_factory is None:
        raise ValueError("db_session_factory is required")
    secret = session_secret or os.getenv("SESSION_SECRET")
    if secret is None:
        secret = base64.urlsafe_b64encode(os.urandom(32)).decode()
    timeout = session_timeout or int(os.getenv("SESSION_TIMEOUT", "3600"))
    user = login_user or os.getenv("LOGIN_USER", "admin")
    password = login_password or os.getenv("LOGIN_PASSWORD", "adminpass")
    cipher = key_cipher or KeyCipher.from_env()
    service = deepseek_service or DeepSeekService.from_env()

    session = SessionManager(secret, timeout)
    app = asgi.App(
        middleware=[
            AuthMiddleware(session, in_band_paths={COMPLETE_STREAM_PATH}),
            AsyncMsgspecMiddleware(),
        ]
    )
    app.add_error_handler(falcon.HTTPError, handle_http_error)
    app.add_error_handler(Exception, handle_unexpected_error)
    app.add_error_handler(msgspec.ValidationError, handle_msgspec_validation_error)
    app.req_options.media_handlers["application/json"] = json_handler
    app.resp_options.media_handlers["application/json"] = json_handler

    stream_cfg = FormStreamConfig(
        service=service,
        session_factory=db_session_factory,
        cipher=cipher,
        complete_func=complete_form_func,
    )
    app.add_route(COMPLETE_STREAM_PATH, FormCompletionStreamResource(stream_cfg))
    app.add_route("/api/forms", FormCollectionResource(db_session_factory))
    app.add_route("/api/forms/{form_id:uuid}", FormResource(db_session_factory))
    app.add_route(
        "/api/keys/deepseek", ApiKeyResource(db_session_factory, cipher, service)
    )
    app.add_route("/api/templates", TemplateResource())
    app.add_route("/health", HealthResource())
    app.add_route("/login", LoginResource(session, user, password))
    return app
