"""Stream DeepSeek form completions to clients over Server-Sent Events."""

from .app import create_app
from .completion import complete_form
from .deepseek import (
    ChatCompletionRequest,
    ChatMessage,
    DeepSeekAPIError,
    DeepSeekAsyncClient,
    DeepSeekAuthenticationError,
    DeepSeekClientError,
    DeepSeekInsufficientBalanceError,
    DeepSeekInvalidRequestError,
    DeepSeekNetworkError,
    DeepSeekRateLimitError,
    DeepSeekResponseDataValidationError,
    DeepSeekServerError,
    DeepSeekTimeoutError,
    StreamChunk,
)
from .deepseek_service import DeepSeekService
from .events import ChunkEvent, DoneEvent, ErrorEvent, FormIdEvent, RejectionEvent
from .form_stream import CompletionRequest, FormStreamConfig, stream_form_completion

__all__ = [
    "ChatCompletionRequest",
    "ChatMessage",
    "ChunkEvent",
    "CompletionRequest",
    "DeepSeekAPIError",
    "DeepSeekAsyncClient",
    "DeepSeekAuthenticationError",
    "DeepSeekClientError",
    "DeepSeekInsufficientBalanceError",
    "DeepSeekInvalidRequestError",
    "DeepSeekNetworkError",
    "DeepSeekRateLimitError",
    "DeepSeekResponseDataValidationError",
    "DeepSeekServerError",
    "DeepSeekService",
    "DeepSeekTimeoutError",
    "DoneEvent",
    "ErrorEvent",
    "FormIdEvent",
    "FormStreamConfig",
    "RejectionEvent",
    "StreamChunk",
    "complete_form",
    "create_app",
    "stream_form_completion",
]
