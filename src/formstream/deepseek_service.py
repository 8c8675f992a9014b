"""Manage cached :class:`DeepSeekAsyncClient` instances by API key."""

from __future__ import annotations

import asyncio
import os
import typing
from collections import OrderedDict
from contextlib import AsyncExitStack

if typing.TYPE_CHECKING:  # pragma: no cover - only for type checking
    import httpx

from .deepseek import (
    DEFAULT_BASE_URL,
    ChatCompletionRequest,
    ChatMessage,
    DeepSeekAsyncClient,
    DeepSeekClientError,
    DeepSeekTimeoutError,
    StreamChunk,
)

__all__ = [
    "DEFAULT_MODEL",
    "DeepSeekService",
    "DeepSeekServiceBadGatewayError",
    "DeepSeekServiceError",
    "DeepSeekServiceTimeoutError",
    "stream_chat_with_service",
]

DEFAULT_MODEL = "deepseek-chat"


class DeepSeekService:
    """Cache and manage :class:`DeepSeekAsyncClient` instances.

    Each user brings their own API key, so one client is kept per key. The
    cache is bounded; the least recently used client is closed when it
    overflows.
    """

    def __init__(
        self,
        *,
        default_model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout_config: httpx.Timeout | None = None,
        max_clients: int = 10,
        temperature: float | None = None,
    ) -> None:
        """Store settings shared by every client the service creates."""
        self.default_model = default_model
        self.base_url = base_url
        self.timeout_config = timeout_config
        self.max_clients = max_clients
        self.temperature = temperature

        self._lock = asyncio.Lock()
        self._stack = AsyncExitStack()
        self._entered = False
        self._clients: OrderedDict[str, DeepSeekAsyncClient] = OrderedDict()

    @classmethod
    def from_env(cls) -> DeepSeekService:
        """Create a service using ``DEEPSEEK_*`` environment variables."""
        model = os.getenv("DEEPSEEK_MODEL") or DEFAULT_MODEL
        base_url = os.getenv("DEEPSEEK_BASE_URL") or DEFAULT_BASE_URL
        raw_temperature = os.getenv("DEEPSEEK_TEMPERATURE")
        temperature = float(raw_temperature) if raw_temperature else None
        return cls(default_model=model, base_url=base_url, temperature=temperature)

    async def _ensure_stack(self) -> None:
        async with self._lock:
            if not self._entered:
                await self._stack.__aenter__()
                self._entered = True

    async def __aenter__(self) -> DeepSeekService:
        """Open the exit stack that owns the cached clients."""
        await self._ensure_stack()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: typing.Any,
    ) -> None:
        """Close every cached client."""
        await self._stack.aclose()
        self._clients.clear()
        self._stack = AsyncExitStack()
        self._entered = False

    async def aclose(self) -> None:
        """Drop every cached client; the service stays usable afterwards."""
        await self.__aexit__(None, None, None)
        await self._ensure_stack()

    async def _get_client(self, api_key: str) -> DeepSeekAsyncClient:
        await self._ensure_stack()
        async with self._lock:
            if api_key in self._clients:
                self._clients.move_to_end(api_key)
                return self._clients[api_key]
            if len(self._clients) >= self.max_clients:
                _, stale = self._clients.popitem(last=False)
                await stale.__aexit__(None, None, None)
            client = DeepSeekAsyncClient(
                api_key=api_key,
                base_url=self.base_url,
                timeout_config=self.timeout_config,
            )
            client = await self._stack.enter_async_context(client)
            self._clients[api_key] = client
            return client

    async def remove_client(self, api_key: str) -> None:
        """Forget the client for *api_key*, e.g. after the user replaces the key."""
        async with self._lock:
            client = self._clients.pop(api_key, None)
        if client is not None:
            await client.__aexit__(None, None, None)

    async def stream_chat_completion(
        self,
        api_key: str,
        messages: list[ChatMessage],
        *,
        model: str | None = None,
    ) -> typing.AsyncIterator[StreamChunk]:
        """Stream a chat completion from DeepSeek."""
        request = ChatCompletionRequest(
            model=model or self.default_model,
            messages=messages,
            stream=True,
            temperature=self.temperature,
        )
        client = await self._get_client(api_key)
        async for chunk in client.stream_chat_completion(request):
            yield chunk


class DeepSeekServiceError(Exception):
    """Raised when the DeepSeek service fails."""


class DeepSeekServiceTimeoutError(DeepSeekServiceError):
    """Raised when the DeepSeek client times out."""


class DeepSeekServiceBadGatewayError(DeepSeekServiceError):
    """Raised when DeepSeek returns an error or cannot be reached."""


async def stream_chat_with_service(
    service: DeepSeekService,
    api_key: str,
    messages: list[ChatMessage],
    *,
    model: str | None = None,
) -> typing.AsyncIterator[StreamChunk]:
    """Relay ``service.stream_chat_completion``, mapping client errors.

    Timeouts become :class:`DeepSeekServiceTimeoutError`; every other
    client failure becomes :class:`DeepSeekServiceBadGatewayError`.
    """
    try:
        async for chunk in service.stream_chat_completion(
            api_key, messages, model=model
        ):
            yield chunk
    except DeepSeekTimeoutError as exc:
        raise DeepSeekServiceTimeoutError(str(exc)) from exc
    except DeepSeekClientError as exc:
        raise DeepSeekServiceBadGatewayError(str(exc)) from exc
