"""The form completion event stream."""

from __future__ import annotations

import contextlib
import dataclasses as dc
import logging
import typing

import msgspec
from msgspec import json as msgspec_json
from sqlalchemy.exc import SQLAlchemyError

from .auth import authenticate_request
from .completion import CompleteFormFunc, complete_form
from .deepseek_service import DeepSeekServiceError
from .errors import (
    AuthFailure,
    ConfigMissing,
    PersistenceError,
    ProviderError,
    error_event,
)
from .events import ChunkEvent, DoneEvent, FormEvent, FormIdEvent
from .models import FormStatus
from .repository import create_form, get_api_key_record, update_form

if typing.TYPE_CHECKING:  # pragma: no cover
    import falcon

    from .crypto import KeyCipher
    from .deepseek_service import DeepSeekService
    from .repository import SessionFactory

__all__ = ["CompletionRequest", "FormStreamConfig", "stream_form_completion"]

_logger = logging.getLogger(__name__)


class CompletionRequest(msgspec.Struct, rename="camel"):
    """Body of a form completion request."""

    title: str
    form_content: str
    client_info: typing.Any = msgspec.field(default_factory=dict)
    template_name: str | None = None


_REQUEST_DECODER = msgspec_json.Decoder(CompletionRequest)


@dc.dataclass(slots=True)
class FormStreamConfig:
    """Collaborators needed to serve a completion stream."""

    service: DeepSeekService
    session_factory: SessionFactory
    cipher: KeyCipher
    complete_func: CompleteFormFunc = complete_form


@contextlib.asynccontextmanager
async def _translate_errors() -> typing.AsyncIterator[None]:
    try:
        yield
    except DeepSeekServiceError as exc:
        raise ProviderError(str(exc)) from exc
    except SQLAlchemyError as exc:
        raise PersistenceError(str(exc)) from exc


async def stream_form_completion(
    cfg: FormStreamConfig,
    req: falcon.Request,
    raw_body: bytes,
) -> typing.AsyncIterator[FormEvent]:
    """Complete a form and yield the events describing the progress.

    Events come out in this order: ``form_id``, any number of ``chunk``
    events, then ``done``. A failure at any step ends the stream with a
    single error event instead. A form that was already created when the
    failure happened stays ``pending``.
    """
    try:
        async with _translate_errors():
            user_id = await authenticate_request(cfg.session_factory, req)
        if user_id is None:
            raise AuthFailure

        async with _translate_errors():
            key_record = await get_api_key_record(cfg.session_factory, user_id)
        if key_record is None:
            raise ConfigMissing
        api_key = cfg.cipher.decrypt_api_key(key_record.encrypted_key)
        body = _REQUEST_DECODER.decode(raw_body)

        async with _translate_errors():
            form = await create_form(
                cfg.session_factory,
                user_id=user_id,
                title=body.title,
                form_content=body.form_content,
                client_info=body.client_info,
                template_name=body.template_name,
            )
        form_id = form.id
        yield FormIdEvent(form_id=form_id)

        fragments: list[str] = []
        fragment_stream = cfg.complete_func(
            cfg.service,
            api_key,
            body.form_content,
            body.client_info,
            body.template_name,
        )
        async with (
            _translate_errors(),
            contextlib.aclosing(fragment_stream) as stream,
        ):
            async for fragment in stream:
                fragments.append(fragment)
                yield ChunkEvent(content=fragment)

        async with _translate_errors():
            await update_form(
                cfg.session_factory,
                form_id,
                completed_content="".join(fragments),
                status=FormStatus.COMPLETED,
            )
        _logger.info("completed form %s (%d fragments)", form_id, len(fragments))
        yield DoneEvent(form_id=form_id)
    except (AuthFailure, ConfigMissing) as exc:
        _logger.info("form completion rejected: %s", exc)
        yield error_event(exc)
    except Exception as exc:
        _logger.exception("form completion failed", exc_info=exc)
        yield error_event(exc)
