"""Messages pushed to the client on the form completion event stream."""

from __future__ import annotations

import typing
import uuid  # noqa: TC003 - msgspec needs the type at runtime

import msgspec
from msgspec import Struct
from msgspec import json as msgspec_json

__all__ = [
    "ChunkEvent",
    "DoneEvent",
    "ErrorEvent",
    "FormEvent",
    "FormIdEvent",
    "RejectionEvent",
    "decode_event",
    "encode_event",
]


class FormIdEvent(Struct, tag="form_id", tag_field="type", rename="camel"):
    """Identifier of the form created for this request."""

    form_id: uuid.UUID


class ChunkEvent(Struct, tag="chunk", tag_field="type"):
    """One fragment of completed text."""

    content: str


class DoneEvent(Struct, tag="done", tag_field="type", rename="camel"):
    """The completion finished and the form was saved."""

    form_id: uuid.UUID


class ErrorEvent(Struct, tag="error", tag_field="type"):
    """The request failed after the stream started doing work."""

    error: str


class RejectionEvent(Struct):
    """The request was refused before any work was done.

    Carries no ``type`` tag.
    """

    error: str


FormEvent: typing.TypeAlias = (
    FormIdEvent | ChunkEvent | DoneEvent | ErrorEvent | RejectionEvent
)

_ENCODER = msgspec_json.Encoder()


def encode_event(event: FormEvent) -> bytes:
    """Return the JSON body of an SSE ``data`` line for *event*."""
    return _ENCODER.encode(event)


def decode_event(raw: bytes | str) -> FormEvent:
    """Parse an event produced by :func:`encode_event`."""
    data = msgspec_json.decode(raw)
    if isinstance(data, dict) and "type" not in data:
        return msgspec.convert(data, RejectionEvent)
    return msgspec.convert(data, FormIdEvent | ChunkEvent | DoneEvent | ErrorEvent)
