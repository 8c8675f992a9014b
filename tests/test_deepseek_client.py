"""Tests for the DeepSeek client implementation."""
from __future__ import annotations

import typing
from http import HTTPStatus

import httpx
import pytest
from msgspec import json as msgspec_json

if typing.TYPE_CHECKING:  # pragma: no cover - fixtures only
    import collections.abc as cabc

    from pytest_httpx import HTTPXMock

from formstream import (
    ChatCompletionRequest,
    ChatMessage,
    DeepSeekAPIError,
    DeepSeekAsyncClient,
    DeepSeekAuthenticationError,
    DeepSeekInsufficientBalanceError,
    DeepSeekInvalidRequestError,
    DeepSeekNetworkError,
    DeepSeekRateLimitError,
    DeepSeekResponseDataValidationError,
    DeepSeekServerError,
    DeepSeekTimeoutError,
)
from formstream.deepseek import CHAT_COMPLETIONS_PATH, DEFAULT_BASE_URL

CHAT_COMPLETIONS_URL = f"{DEFAULT_BASE_URL.rstrip('/')}{CHAT_COMPLETIONS_PATH}"

CHUNK = (
    b'data: {"id": "1", "object": "chat.completion.chunk", "created": 1,'
    b' "model": "deepseek-chat", "choices": [{"index": 0,'
    b' "delta": {"content": "hi"}}]}\n\n'
)


def _request(*, stream: bool = True) -> ChatCompletionRequest:
    return ChatCompletionRequest(
        model="deepseek-chat",
        messages=[ChatMessage(role="user", content="hi")],
        stream=stream,
    )


@pytest.fixture
def add_chat_response(httpx_mock: HTTPXMock) -> cabc.Callable[..., None]:
    """Return a helper to add a canned chat response."""
    def _add_response(**kwargs: typing.Any) -> None:  # noqa: ANN401
        httpx_mock.add_response(method="POST", url=CHAT_COMPLETIONS_URL, **kwargs)

    return _add_response


async def _drain(client: DeepSeekAsyncClient) -> list[typing.Any]:
    return [c async for c in client.stream_chat_completion(_request())]


@pytest.mark.asyncio
async def test_streaming_yields_chunks(
    httpx_mock: HTTPXMock, add_chat_response: cabc.Callable[..., None]
) -> None:
    """Streaming responses should yield parsed chunks."""
    add_chat_response(
        headers={"Content-Type": "text/event-stream"},
        content=b": keep-alive\n\n" + CHUNK + b"data: \n\n" + CHUNK,
    )

    async with DeepSeekAsyncClient(api_key="k") as client:
        chunks = await _drain(client)

    assert [c.choices[0].delta.content for c in chunks] == ["hi", "hi"]
    request = httpx_mock.get_request()
    assert request is not None
    assert request.headers["Authorization"] == "Bearer k"


@pytest.mark.asyncio
async def test_streaming_stops_at_done_marker(
    httpx_mock: HTTPXMock, add_chat_response: cabc.Callable[..., None]
) -> None:
    """Nothing after ``data: [DONE]`` is decoded."""
    add_chat_response(
        headers={"Content-Type": "text/event-stream"},
        content=CHUNK + b"data: [DONE]\n\ndata: not json\n\n",
    )

    async with DeepSeekAsyncClient(api_key="k") as client:
        chunks = await _drain(client)

    assert len(chunks) == 1


@pytest.mark.asyncio
async def test_stream_chat_completion_sets_stream_true(
    httpx_mock: HTTPXMock, add_chat_response: cabc.Callable[..., None]
) -> None:
    """Streaming API requests should send ``stream=True``."""
    add_chat_response(
        headers={"Content-Type": "text/event-stream"}, content=b"data: [DONE]\n\n"
    )

    async with DeepSeekAsyncClient(api_key="k") as client:
        chunks = [
            c async for c in client.stream_chat_completion(_request(stream=False))
        ]

    assert chunks == []
    request = httpx_mock.get_request()
    assert request is not None
    body = msgspec_json.decode(request.content)
    assert body["stream"] is True
    assert body["model"] == "deepseek-chat"
    assert "temperature" not in body


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "exc_type"),
    [
        (HTTPStatus.BAD_REQUEST, DeepSeekInvalidRequestError),
        (HTTPStatus.UNAUTHORIZED, DeepSeekAuthenticationError),
        (HTTPStatus.PAYMENT_REQUIRED, DeepSeekInsufficientBalanceError),
        (HTTPStatus.UNPROCESSABLE_ENTITY, DeepSeekInvalidRequestError),
        (HTTPStatus.TOO_MANY_REQUESTS, DeepSeekRateLimitError),
        (HTTPStatus.SERVICE_UNAVAILABLE, DeepSeekServerError),
        (HTTPStatus.CONFLICT, DeepSeekAPIError),
    ],
)
async def test_error_status_maps_to_exception(
    httpx_mock: HTTPXMock,
    add_chat_response: cabc.Callable[..., None],
    status: HTTPStatus,
    exc_type: type[DeepSeekAPIError],
) -> None:
    """HTTP errors from the API map to custom exceptions."""
    add_chat_response(
        status_code=status, json={"error": {"message": "nope", "type": "x"}}
    )

    async with DeepSeekAsyncClient(api_key="k") as client:
        with pytest.raises(exc_type) as excinfo:
            await _drain(client)

    assert excinfo.value.status_code == status
    assert str(excinfo.value) == f"DeepSeek API error {status.value}: nope"


@pytest.mark.asyncio
async def test_error_without_json_body(
    httpx_mock: HTTPXMock, add_chat_response: cabc.Callable[..., None]
) -> None:
    add_chat_response(status_code=HTTPStatus.BAD_GATEWAY, content=b"<html>")

    async with DeepSeekAsyncClient(api_key="k") as client:
        with pytest.raises(DeepSeekServerError) as excinfo:
            await _drain(client)

    assert excinfo.value.error_details is None
    assert str(excinfo.value) == "DeepSeek API error 502"


@pytest.mark.asyncio
async def test_network_error_maps_to_client_error(httpx_mock: HTTPXMock) -> None:
    """Network errors raise ``DeepSeekNetworkError``."""
    httpx_mock.add_exception(
        method="POST",
        url=CHAT_COMPLETIONS_URL,
        exception=httpx.ConnectError(
            "boom", request=httpx.Request("POST", DEFAULT_BASE_URL)
        ),
    )

    async with DeepSeekAsyncClient(api_key="k") as client:
        with pytest.raises(DeepSeekNetworkError):
            await _drain(client)


@pytest.mark.asyncio
async def test_timeout_error_maps_to_timeout_exception(httpx_mock: HTTPXMock) -> None:
    """Timeout errors raise ``DeepSeekTimeoutError``."""
    httpx_mock.add_exception(
        method="POST",
        url=CHAT_COMPLETIONS_URL,
        exception=httpx.ReadTimeout(
            "slow", request=httpx.Request("POST", DEFAULT_BASE_URL)
        ),
    )

    async with DeepSeekAsyncClient(api_key="k") as client:
        with pytest.raises(DeepSeekTimeoutError):
            await _drain(client)


@pytest.mark.asyncio
async def test_stream_invalid_chunk_raises_validation_error(
    httpx_mock: HTTPXMock, add_chat_response: cabc.Callable[..., None]
) -> None:
    """Invalid streamed chunks raise validation errors."""
    add_chat_response(
        headers={"Content-Type": "text/event-stream"},
        content=b'data: {"id": 1}\n\n',
    )

    async with DeepSeekAsyncClient(api_key="k") as client:
        with pytest.raises(DeepSeekResponseDataValidationError):
            await _drain(client)


@pytest.mark.asyncio
async def test_client_rejects_use_after_exit() -> None:
    """Client sessions should close and reject new requests."""
    client = DeepSeekAsyncClient(api_key="k")
    async with client:
        pass
    with pytest.raises(RuntimeError):
        await _drain(client)


@pytest.mark.asyncio
async def test_streaming_ignores_reasoning_and_usage_fields(
    httpx_mock: HTTPXMock, add_chat_response: cabc.Callable[..., None]
) -> None:
    """Undeclared fields such as ``reasoning_content`` and ``usage`` are skipped."""
    add_chat_response(
        headers={"Content-Type": "text/event-stream"},
        content=(
            b'data: {"id": "1", "object": "chat.completion.chunk", "created": 1,'
            b' "model": "deepseek-reasoner", "system_fingerprint": "fp",'
            b' "choices": [{"index": 0, "delta": {"role": "assistant",'
            b' "reasoning_content": "thinking", "content": null}}]}\n\n'
            b'data: {"id": "1", "object": "chat.completion.chunk", "created": 1,'
            b' "model": "deepseek-reasoner", "choices": [{"index": 0,'
            b' "delta": {"content": "ok"}, "finish_reason": "stop"}],'
            b' "usage": {"prompt_tokens": 3, "completion_tokens": 1,'
            b' "total_tokens": 4}}\n\n'
        ),
    )

    async with DeepSeekAsyncClient(api_key="k") as client:
        chunks = await _drain(client)

    assert [c.choices[0].delta.content for c in chunks] == [None, "ok"]
    assert chunks[1].choices[0].finish_reason == "stop"
