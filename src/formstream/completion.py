"""Form completion on top of the DeepSeek streaming API."""

from __future__ import annotations

import contextlib
import typing

from msgspec import json as msgspec_json

from .deepseek import ChatMessage
from .deepseek_service import stream_chat_with_service
from .templates import get_template

if typing.TYPE_CHECKING:  # pragma: no cover
    from .deepseek_service import DeepSeekService

__all__ = ["CompleteFormFunc", "build_form_messages", "complete_form"]

#: Signature of a form completion provider.
#:
#: ``(service, api_key, form_content, client_info, template_name)`` returning
#: an async iterator of text fragments. The iterator is finite and can only
#: be consumed once; the completed form is the concatenation of everything
#: it yields.
CompleteFormFunc: typing.TypeAlias = typing.Callable[
    ["DeepSeekService", str, str, typing.Any, "str | None"],
    typing.AsyncIterator[str],
]

_ENCODER = msgspec_json.Encoder(order="sorted")


def build_form_messages(
    form_content: str, client_info: typing.Any, template_name: str | None
) -> list[ChatMessage]:
    """Return the chat messages asking the model to complete a form."""
    template = get_template(template_name)
    client_json = _ENCODER.encode(client_info).decode()
    prompt = (
        f"Client information (JSON):\n{client_json}\n\n"
        f"Form to complete:\n{form_content}"
    )
    return [
        ChatMessage(role="system", content=template.system_prompt),
        ChatMessage(role="user", content=prompt),
    ]


async def complete_form(
    service: DeepSeekService,
    api_key: str,
    form_content: str,
    client_info: typing.Any,
    template_name: str | None,
) -> typing.AsyncIterator[str]:
    """Yield the completed form as text fragments, in the order produced."""
    messages = build_form_messages(form_content, client_info, template_name)
    stream = stream_chat_with_service(service, api_key, messages)
    async with contextlib.aclosing(stream) as chunks:
        async for chunk in chunks:
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            if choice.delta.content:
                yield choice.delta.content
            if choice.finish_reason is not None:
                break
