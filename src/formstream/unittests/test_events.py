"""Unit tests for the event stream wire format."""
from __future__ import annotations

import uuid

import msgspec
import pytest
from msgspec import json as msgspec_json

from formstream.errors import (
    AuthFailure,
    ConfigMissing,
    PersistenceError,
    ProviderError,
    error_event,
)
from formstream.events import (
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    FormIdEvent,
    RejectionEvent,
    decode_event,
    encode_event,
)

FORM_ID = uuid.UUID("12345678-1234-5678-1234-567812345678")


@pytest.mark.parametrize(
    ("event", "expected"),
    [
        (FormIdEvent(form_id=FORM_ID), {"type": "form_id", "formId": str(FORM_ID)}),
        (ChunkEvent(content="Hel"), {"type": "chunk", "content": "Hel"}),
        (DoneEvent(form_id=FORM_ID), {"type": "done", "formId": str(FORM_ID)}),
        (ErrorEvent(error="boom"), {"type": "error", "error": "boom"}),
        (RejectionEvent(error="Not authenticated"), {"error": "Not authenticated"}),
    ],
)
def test_wire_shape(event: object, expected: dict[str, str]) -> None:
    assert msgspec_json.decode(encode_event(event)) == expected  # pyright: ignore[reportArgumentType]


def test_decode_distinguishes_untagged_rejection() -> None:
    assert decode_event(b'{"error": "nope"}') == RejectionEvent(error="nope")
    assert decode_event('{"type": "error", "error": "nope"}') == ErrorEvent(
        error="nope"
    )
    assert decode_event(f'{{"type": "done", "formId": "{FORM_ID}"}}') == DoneEvent(
        form_id=FORM_ID
    )


def test_decode_rejects_unknown_type() -> None:
    with pytest.raises(msgspec.ValidationError):
        decode_event('{"type": "progress"}')


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (AuthFailure(), RejectionEvent(error="Not authenticated")),
        (
            ConfigMissing(),
            RejectionEvent(error="Please configure your API key first"),
        ),
        (
            ProviderError("DeepSeek API error 500"),
            ErrorEvent(error="DeepSeek API error 500"),
        ),
        (PersistenceError("disk full"), ErrorEvent(error="disk full")),
        (ValueError(), ErrorEvent(error="Unknown error")),
    ],
)
def test_error_event_mapping(exc: Exception, expected: object) -> None:
    assert error_event(exc) == expected
