"""Error types and Falcon error handlers."""

from __future__ import annotations

import logging
import typing
from http import HTTPStatus

from .events import ErrorEvent, RejectionEvent

if typing.TYPE_CHECKING:  # pragma: no cover
    from falcon import HTTPError, Request, Response

__all__ = [
    "AUTH_REQUIRED_MESSAGE",
    "KEY_REQUIRED_MESSAGE",
    "UNKNOWN_ERROR_MESSAGE",
    "AuthFailure",
    "ConfigMissing",
    "FormStreamError",
    "PersistenceError",
    "ProviderError",
    "error_event",
    "handle_http_error",
    "handle_unexpected_error",
]

AUTH_REQUIRED_MESSAGE = "Not authenticated"
KEY_REQUIRED_MESSAGE = "Please configure your API key first"
UNKNOWN_ERROR_MESSAGE = "Unknown error"


class FormStreamError(Exception):
    """Base class for failures reported on the completion stream."""

    #: Whether the failure happened before any side effects.
    rejected_early: typing.ClassVar[bool] = False


class AuthFailure(FormStreamError):
    """The caller could not be identified."""

    rejected_early = True

    def __init__(self) -> None:
        super().__init__(AUTH_REQUIRED_MESSAGE)


class ConfigMissing(FormStreamError):
    """The caller has not stored an API key."""

    rejected_early = True

    def __init__(self) -> None:
        super().__init__(KEY_REQUIRED_MESSAGE)


class ProviderError(FormStreamError):
    """The completion provider failed or could not be reached."""


class PersistenceError(FormStreamError):
    """Reading or writing a database record failed."""


def error_event(exc: BaseException) -> ErrorEvent | RejectionEvent:
    """Map *exc* to the single error message sent before the stream closes.

    Early rejections are sent without a ``type`` tag; everything else is a
    tagged ``error`` event carrying the exception text.
    """
    message = str(exc) or UNKNOWN_ERROR_MESSAGE
    if isinstance(exc, FormStreamError) and exc.rejected_early:
        return RejectionEvent(error=message)
    return ErrorEvent(error=message)


async def handle_http_error(
    req: Request,
    resp: Response,
    exc: HTTPError,
    params: dict[str, typing.Any],
) -> None:
    """Serialize :class:`falcon.HTTPError` exceptions as JSON."""
    resp.status = exc.status
    resp.media = {"title": exc.title, "description": exc.description}


async def handle_unexpected_error(
    req: Request,
    resp: Response,
    exc: BaseException,
    params: dict[str, typing.Any],
) -> None:
    """Handle uncaught exceptions with a generic JSON payload."""
    logging.exception("unhandled error", exc_info=exc)
    resp.status = HTTPStatus.INTERNAL_SERVER_ERROR
    resp.media = {
        "title": (
            f"{HTTPStatus.INTERNAL_SERVER_ERROR.value} "
            f"{HTTPStatus.INTERNAL_SERVER_ERROR.phrase}"
        ),
        "description": "An unexpected error occurred.",
    }
