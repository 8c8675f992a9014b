# pyright: reportUnknownArgumentType=false, reportCallIssue=false, reportGeneralTypeIssues=false, reportUntypedBaseClass=false
"""Async DeepSeek chat-completions client built on httpx and msgspec."""

from __future__ import annotations

import contextlib
import typing
from http import HTTPStatus

import httpx
import msgspec
from msgspec import json as msgspec_json

if typing.TYPE_CHECKING:  # pragma: no cover - imports for type checking
    import collections.abc as cabc

__all__ = [
    "CHAT_COMPLETIONS_PATH",
    "DEFAULT_BASE_URL",
    "ChatCompletionRequest",
    "ChatMessage",
    "DeepSeekAPIError",
    "DeepSeekAsyncClient",
    "DeepSeekAuthenticationError",
    "DeepSeekClientError",
    "DeepSeekDataValidationError",
    "DeepSeekInsufficientBalanceError",
    "DeepSeekInvalidRequestError",
    "DeepSeekNetworkError",
    "DeepSeekRateLimitError",
    "DeepSeekRequestDataValidationError",
    "DeepSeekResponseDataValidationError",
    "DeepSeekServerError",
    "DeepSeekStreamChunkDecodeError",
    "DeepSeekTimeoutError",
    "ResponseDelta",
    "Role",
    "StreamChoice",
    "StreamChunk",
]


DEFAULT_BASE_URL = "https://api.deepseek.com/"
CHAT_COMPLETIONS_PATH = "/chat/completions"
STREAM_DONE = "[DONE]"

Role = typing.Literal["system", "user", "assistant"]


class ClientNotInitializedError(RuntimeError):
    """The client was used outside ``async with``."""

    def __init__(self) -> None:
        super().__init__("client not initialized; use async with")


class ChatMessage(msgspec.Struct):
    """A single chat message sent to DeepSeek."""

    role: Role
    content: str


class ChatCompletionRequest(
    msgspec.Struct, forbid_unknown_fields=True, omit_defaults=True
):
    """Body of a chat completion request.

    Unset optional fields are left out of the JSON so DeepSeek applies its
    own defaults.
    """

    model: str
    messages: list[ChatMessage]
    stream: bool = False
    temperature: float | None = None


class ResponseDelta(msgspec.Struct):
    """Incremental message text. Other delta fields are ignored."""

    content: str | None = None


class StreamChoice(msgspec.Struct):
    """One candidate inside a stream chunk."""

    index: int
    delta: ResponseDelta
    finish_reason: str | None = None


class StreamChunk(msgspec.Struct, forbid_unknown_fields=False):
    """Decoded ``data:`` line of the completion stream.

    Only the fields used to assemble the text are declared; ``usage`` and
    the rest are skipped.
    """

    id: str
    object: typing.Literal["chat.completion.chunk"]
    created: int
    model: str
    choices: list[StreamChoice]


class DeepSeekAPIErrorDetails(msgspec.Struct, forbid_unknown_fields=False):
    """The ``error`` object of a DeepSeek error body."""

    message: str
    code: str | int | None = None
    param: str | None = None
    type: str | None = None


class DeepSeekErrorResponse(msgspec.Struct, forbid_unknown_fields=False):
    """Top-level DeepSeek error body."""

    error: DeepSeekAPIErrorDetails


class DeepSeekClientError(Exception):
    """Base exception for DeepSeek client errors."""


class DeepSeekNetworkError(DeepSeekClientError):
    """DeepSeek could not be reached."""


class DeepSeekTimeoutError(DeepSeekNetworkError):
    """The request to DeepSeek timed out."""


class DeepSeekAPIError(DeepSeekClientError):
    """Base class for HTTP errors returned by DeepSeek."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_details: DeepSeekAPIErrorDetails | None = None,
    ) -> None:
        """Keep the HTTP status and DeepSeek's error body next to the message."""
        super().__init__(message)
        self.status_code = status_code
        self.error_details = error_details

    @classmethod
    def from_status_code(
        cls,
        status_code: int,
        *,
        error_details: DeepSeekAPIErrorDetails | None = None,
    ) -> DeepSeekAPIError:
        """Build an exception whose message prefers the API's own wording."""
        message = f"DeepSeek API error {status_code}"
        if error_details is not None and error_details.message:
            message = f"{message}: {error_details.message}"
        return cls(message, status_code=status_code, error_details=error_details)


class DeepSeekAuthenticationError(DeepSeekAPIError):
    """HTTP 401: the API key was rejected."""


class DeepSeekInsufficientBalanceError(DeepSeekAPIError):
    """HTTP 402: the DeepSeek account has no balance left."""


class DeepSeekInvalidRequestError(DeepSeekAPIError):
    """HTTP 400 or 422: DeepSeek refused the request body."""


class DeepSeekRateLimitError(DeepSeekAPIError):
    """HTTP 429: too many requests."""


class DeepSeekServerError(DeepSeekAPIError):
    """HTTP 5xx, including 503 when DeepSeek is overloaded."""


class DeepSeekDataValidationError(DeepSeekClientError):
    """A payload did not match the expected schema."""


class DeepSeekRequestDataValidationError(DeepSeekDataValidationError):
    """A request could not be encoded."""


class DeepSeekResponseDataValidationError(DeepSeekDataValidationError):
    """A response body could not be decoded."""


class DeepSeekStreamChunkDecodeError(DeepSeekResponseDataValidationError):
    """A ``data:`` line held something other than a chunk."""

    def __init__(self, payload: str) -> None:
        super().__init__(f"failed to decode stream chunk: {payload}")


_STATUS_MAP = {
    HTTPStatus.BAD_REQUEST: DeepSeekInvalidRequestError,
    HTTPStatus.UNAUTHORIZED: DeepSeekAuthenticationError,
    HTTPStatus.PAYMENT_REQUIRED: DeepSeekInsufficientBalanceError,
    HTTPStatus.UNPROCESSABLE_ENTITY: DeepSeekInvalidRequestError,
    HTTPStatus.TOO_MANY_REQUESTS: DeepSeekRateLimitError,
}


def _map_status_to_error(status: int) -> type[DeepSeekAPIError]:
    """Map an HTTP status to a client error type."""
    try:
        status_enum = HTTPStatus(status)
    except ValueError:
        return DeepSeekAPIError

    if status_enum in _STATUS_MAP:
        return _STATUS_MAP[status_enum]
    if status_enum >= HTTPStatus.INTERNAL_SERVER_ERROR:
        return DeepSeekServerError
    return DeepSeekAPIError


class DeepSeekAsyncClient:
    """Asynchronous client for DeepSeek's chat completions API."""

    _ENCODER = msgspec_json.Encoder()
    _STREAM_DECODER = msgspec_json.Decoder(StreamChunk)
    _ERR_DECODER = msgspec_json.Decoder(DeepSeekErrorResponse)

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str | None = None,
        timeout_config: httpx.Timeout | None = None,
        default_headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Configure a client; nothing is opened until ``async with``.

        Parameters
        ----------
        api_key:
            The user's DeepSeek key, sent as a bearer token.
        base_url:
            API root, ``DEFAULT_BASE_URL`` unless overridden (proxies, tests).
        timeout_config:
            Passed straight to ``httpx``; ``None`` keeps httpx's default.
        default_headers:
            Headers merged over the authorisation header.
        transport:
            Alternative ``httpx`` transport.
        """
        self.api_key = api_key
        self.base_url = base_url or DEFAULT_BASE_URL
        self.timeout = timeout_config
        self._user_headers = default_headers or {}
        self._client: httpx.AsyncClient | None = None
        self._transport = transport

    async def __aenter__(self) -> typing.Self:
        """Open an ``httpx`` client authorised with the API key."""
        headers = {"Authorization": f"Bearer {self.api_key}"} | self._user_headers
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: typing.Any,
    ) -> None:
        """Close the ``httpx`` client, if open."""
        if not self._client:
            return
        await self._client.aclose()
        self._client = None

    def _decode_error_details(self, data: bytes) -> DeepSeekAPIErrorDetails | None:
        try:
            return self._ERR_DECODER.decode(data).error
        except (msgspec.DecodeError, msgspec.ValidationError):
            return None

    async def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < HTTPStatus.BAD_REQUEST:
            return
        raw = await resp.aread()
        details = self._decode_error_details(raw)
        exc_cls = _map_status_to_error(resp.status_code)
        raise exc_cls.from_status_code(resp.status_code, error_details=details)

    def _encode_request(self, request: ChatCompletionRequest) -> bytes:
        try:
            return self._ENCODER.encode(request)
        except (msgspec.ValidationError, msgspec.EncodeError) as e:
            raise DeepSeekRequestDataValidationError(str(e)) from e

    @contextlib.asynccontextmanager
    async def _stream_post(
        self, path: str, *, content: bytes
    ) -> cabc.AsyncIterator[httpx.Response]:
        if not self._client:
            raise ClientNotInitializedError
        try:
            async with self._client.stream("POST", path, content=content) as resp:
                yield resp
        except httpx.TimeoutException as e:
            raise DeepSeekTimeoutError(str(e)) from e
        except httpx.RequestError as e:
            raise DeepSeekNetworkError(str(e)) from e

    async def stream_chat_completion(
        self, request: ChatCompletionRequest
    ) -> cabc.AsyncIterator[StreamChunk]:
        """Send a streaming request and yield chunks as they arrive.

        Comment lines (DeepSeek sends ``: keep-alive`` while the model is
        busy) are skipped, and ``data: [DONE]`` ends the stream.

        Yields
        ------
        StreamChunk
            Parsed stream chunks from DeepSeek.
        """
        if not request.stream:
            request = msgspec.structs.replace(request, stream=True)
        payload = self._encode_request(request)
        async with self._stream_post(CHAT_COMPLETIONS_PATH, content=payload) as resp:
            await self._raise_for_status(resp)
            async for line in resp.aiter_lines():
                if not line.startswith("data:"):
                    continue
                payload_str = line[5:].strip()
                if not payload_str:
                    continue
                if payload_str == STREAM_DONE:
                    break
                try:
                    yield self._STREAM_DECODER.decode(payload_str)
                except (msgspec.DecodeError, msgspec.ValidationError) as e:
                    raise DeepSeekStreamChunkDecodeError(payload_str) from e
