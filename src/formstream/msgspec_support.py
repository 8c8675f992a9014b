"""Integrate msgspec serialization with Falcon."""

from __future__ import annotations

import typing

import falcon
import falcon.media
import msgspec
from msgspec import json as msgspec_json

__all__ = [
    "AsyncMsgspecMiddleware",
    "handle_msgspec_validation_error",
    "json_handler",
]

_ENCODER = msgspec_json.Encoder()
_DECODER = msgspec_json.Decoder()


def _loads(content: bytes | str) -> typing.Any:
    try:
        return _DECODER.decode(content)
    except msgspec.DecodeError as ex:
        raise falcon.MediaMalformedError(falcon.MEDIA_JSON) from ex


def _dumps(obj: typing.Any) -> str:
    """Serialise *obj*, including msgspec Structs, UUIDs and datetimes."""
    return _ENCODER.encode(obj).decode()


json_handler = falcon.media.JSONHandler(dumps=_dumps, loads=_loads)


class AsyncMsgspecMiddleware:
    """Validate request bodies using msgspec schemas.

    A resource opts in by defining ``<METHOD>_SCHEMA`` (``POST_SCHEMA`` and
    so on) as a :class:`msgspec.Struct` subclass. The decoded body is passed
    to the responder as the ``body`` keyword argument.
    """

    async def process_resource(
        self,
        req: falcon.Request,
        resp: falcon.Response,
        resource: object,
        params: dict[str, typing.Any],
    ) -> None:
        """Convert the JSON body into the resource's schema, strictly."""
        schema = getattr(resource, f"{req.method.upper()}_SCHEMA", None)
        if not isinstance(schema, type) or not issubclass(schema, msgspec.Struct):
            return
        media_data = await req.get_media()
        params["body"] = msgspec.convert(media_data, schema, strict=True)


async def handle_msgspec_validation_error(
    req: falcon.Request,
    resp: falcon.Response,
    ex: msgspec.ValidationError,
    params: dict[str, typing.Any],
) -> None:
    """Report a schema mismatch as 422 Unprocessable Entity."""
    resp.status = falcon.HTTP_422
    resp.media = {"title": "Validation Error", "description": str(ex)}
