"""Falcon resource classes for the form completion API."""

from __future__ import annotations

import datetime as dt  # noqa: TC003 - msgspec needs the type at runtime
import logging
import typing
import uuid  # noqa: TC003

import falcon
import msgspec
from falcon.asgi import SSEvent

from .auth import require_user_id
from .crypto import KeyDecryptionError
from .events import encode_event
from .form_stream import FormStreamConfig, stream_form_completion
from .models import FormStatus
from .repository import (
    delete_api_key,
    get_api_key_record,
    get_form,
    list_forms,
    store_api_key,
)
from .templates import get_template, template_names

if typing.TYPE_CHECKING:  # pragma: no cover
    from .crypto import KeyCipher
    from .deepseek_service import DeepSeekService
    from .events import FormEvent
    from .models import Form
    from .repository import SessionFactory

_logger = logging.getLogger(__name__)

SSE_MEDIA_TYPE = "text/event-stream"


class ApiKeyRequest(msgspec.Struct):  # pyright: ignore[reportUntypedBaseClass]
    """Payload for saving a DeepSeek API key."""

    api_key: str


class FormView(msgspec.Struct, rename="camel"):
    """Representation of a stored form returned to clients."""

    id: uuid.UUID
    title: str
    form_content: str
    client_info: typing.Any
    template_name: str | None
    completed_content: str | None
    status: FormStatus
    created_at: dt.datetime
    updated_at: dt.datetime

    @classmethod
    def from_model(cls, form: Form) -> FormView:
        """Build a view of an ORM ``Form``."""
        return cls(
            id=form.id,
            title=form.title,
            form_content=form.form_content,
            client_info=form.client_info,
            template_name=form.template_name,
            completed_content=form.completed_content,
            status=form.status,
            created_at=form.created_at,
            updated_at=form.updated_at,
        )


async def _as_server_sent_events(
    events: typing.AsyncIterator[FormEvent],
) -> typing.AsyncIterator[SSEvent]:
    async for event in events:
        yield SSEvent(data=encode_event(event))


class FormCompletionStreamResource:
    """Complete a form and stream the result as Server-Sent Events.

    Every outcome, including authentication failures, is reported inside the
    event stream; the HTTP status is always 200.
    """

    def __init__(self, cfg: FormStreamConfig) -> None:
        """Create the resource.

        Parameters
        ----------
        cfg : FormStreamConfig
            Provider, database and key cipher used for each request.
        """
        self._cfg = cfg

    async def on_post(self, req: falcon.Request, resp: falcon.Response) -> None:
        """Start the completion stream."""
        resp.content_type = SSE_MEDIA_TYPE
        resp.cache_control = ["no-cache"]
        resp.set_header("Connection", "keep-alive")

        raw_body = await req.stream.read()
        events = stream_form_completion(self._cfg, req, raw_body)
        resp.sse = _as_server_sent_events(events)


class FormCollectionResource:
    """List the caller's forms."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def on_get(self, req: falcon.Request, resp: falcon.Response) -> None:
        """Return the caller's forms, newest first."""
        user_id = await require_user_id(self._session_factory, req)
        forms = await list_forms(self._session_factory, user_id)
        resp.media = {"forms": [FormView.from_model(f) for f in forms]}


class FormResource:
    """Fetch a single form."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def on_get(
        self, req: falcon.Request, resp: falcon.Response, form_id: uuid.UUID
    ) -> None:
        """Return one form owned by the caller.

        Raises
        ------
        falcon.HTTPNotFound
            If the form does not exist or belongs to someone else.
        """
        user_id = await require_user_id(self._session_factory, req)
        form = await get_form(self._session_factory, form_id, user_id)
        if form is None:
            raise falcon.HTTPNotFound()
        resp.media = FormView.from_model(form)


class ApiKeyResource:
    """Store, inspect and remove the caller's DeepSeek API key."""

    POST_SCHEMA = ApiKeyRequest

    def __init__(
        self,
        session_factory: SessionFactory,
        cipher: KeyCipher,
        service: DeepSeekService,
    ) -> None:
        """Create a new ``ApiKeyResource``.

        Parameters
        ----------
        session_factory : Callable[[], AsyncSession]
            Callable returning an :class:`AsyncSession`.
        cipher : KeyCipher
            Cipher used to encrypt keys before they are stored.
        service : DeepSeekService
            Client cache; the client for a replaced or removed key is closed.
        """
        self._session_factory = session_factory
        self._cipher = cipher
        self._service = service

    async def _drop_cached_client(self, user_id: uuid.UUID) -> None:
        record = await get_api_key_record(self._session_factory, user_id)
        if record is None:
            return
        try:
            old_key = self._cipher.decrypt_api_key(record.encrypted_key)
        except KeyDecryptionError:
            # never usable, so never cached
            return
        await self._service.remove_client(old_key)

    async def on_get(self, req: falcon.Request, resp: falcon.Response) -> None:
        """Report whether a key is configured, without revealing it."""
        user_id = await require_user_id(self._session_factory, req)
        record = await get_api_key_record(self._session_factory, user_id)
        resp.media = {"configured": record is not None}

    async def on_post(
        self,
        req: falcon.Request,
        resp: falcon.Response,
        *,
        body: ApiKeyRequest,
    ) -> None:
        """Encrypt and save the provided key."""
        api_key = body.api_key.strip()
        if not api_key:
            raise falcon.HTTPBadRequest(description="api_key must not be empty")
        user_id = await require_user_id(self._session_factory, req)
        await self._drop_cached_client(user_id)
        await store_api_key(
            self._session_factory, user_id, self._cipher.encrypt_api_key(api_key)
        )
        _logger.info("stored API key for user %s", user_id)
        resp.status = falcon.HTTP_NO_CONTENT

    async def on_delete(self, req: falcon.Request, resp: falcon.Response) -> None:
        """Forget the caller's key."""
        user_id = await require_user_id(self._session_factory, req)
        await self._drop_cached_client(user_id)
        if not await delete_api_key(self._session_factory, user_id):
            raise falcon.HTTPNotFound(description="no API key configured")
        resp.status = falcon.HTTP_NO_CONTENT


class TemplateResource:
    """List the available form templates."""

    async def on_get(self, req: falcon.Request, resp: falcon.Response) -> None:
        del req
        resp.media = {
            "templates": [
                {"name": name, "description": get_template(name).description}
                for name in template_names()
            ]
        }


class HealthResource:
    """Basic health check."""

    async def on_get(self, req: falcon.Request, resp: falcon.Response) -> None:
        """Return a simple health status payload."""
        del req  # Unused parameter
        resp.media = {"status": "ok"}
