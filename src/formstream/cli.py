"""Command line client for the form completion server."""

from __future__ import annotations

import asyncio
import dataclasses as dc
import os
import typing
from contextlib import suppress
from pathlib import Path

import httpx
import msgspec
import typer
from msgspec import json as msgspec_json
from textual.app import App, ComposeResult
from textual.widgets import Button, Input, Static

from .events import (
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    FormIdEvent,
    RejectionEvent,
    decode_event,
)

if typing.TYPE_CHECKING:
    import collections.abc as cabc

    from .events import FormEvent


@dc.dataclass(slots=True)
class Session:
    """Connection settings for API requests."""

    host: str
    cookie: str | None = None

    def client(self, **kwargs: typing.Any) -> httpx.AsyncClient:
        """Return an HTTP client carrying the session cookie."""
        if self.cookie:
            kwargs["cookies"] = {"session": self.cookie}
        return httpx.AsyncClient(base_url=self.host, **kwargs)


COOKIE_PATH = Path(
    os.environ.get("FORMSTREAM_COOKIE", str(Path.home() / ".formstream_cookie"))
)

app = typer.Typer(help="Command line interface for the form completion server")


async def _login_request(session: Session, username: str, password: str) -> str:
    async with session.client() as client:
        resp = await client.post("/login", auth=(username, password))
    resp.raise_for_status()
    if not (cookie := resp.cookies.get("session")):
        raise RuntimeError("missing session cookie")
    return cookie


async def perform_login(
    host: str, username: str, password: str, cookie_file: Path = COOKIE_PATH
) -> str:
    """Log in to the server and persist the session cookie."""
    cookie = await _login_request(Session(host), username, password)
    cookie_file.write_text(cookie)
    if os.name == "posix":
        with suppress(OSError):
            cookie_file.chmod(0o600)
    return cookie


async def key_request(session: Session, api_key: str) -> bool:
    """Send a DeepSeek API key to the server and return whether it was stored."""
    async with session.client() as client:
        resp = await client.post("/api/keys/deepseek", json={"api_key": api_key})
    resp.raise_for_status()
    return resp.status_code == 204


async def stream_completion(
    session: Session,
    *,
    title: str,
    form_content: str,
    client_info: typing.Any,
    template_name: str | None,
) -> cabc.AsyncIterator[FormEvent]:
    """Request a completion and yield events as the server sends them."""
    payload = {
        "title": title,
        "formContent": form_content,
        "clientInfo": client_info,
        "templateName": template_name,
    }
    async with (
        session.client(timeout=None) as client,
        client.stream("POST", "/api/forms/complete-stream", json=payload) as resp,
    ):
        resp.raise_for_status()
        async for line in resp.aiter_lines():
            if line.startswith("data:"):
                yield decode_event(line[5:].strip())


class FormApp(App):  # pyright: ignore[reportUntypedBaseClass, reportMissingTypeArgument]
    """Small input form that submits its fields to a callback."""

    def __init__(
        self,
        session: Session,
        fields: list[tuple[str, str, bool]],
        submit_label: str,
        submit_cb: cabc.Callable[..., cabc.Awaitable[str | None]],
    ) -> None:
        super().__init__()
        self.session = session
        self.fields = fields
        self.submit_label = submit_label
        self.submit_cb = submit_cb

    def compose(self) -> ComposeResult:
        for placeholder, fid, is_pw in self.fields:
            yield Input(placeholder=placeholder, password=is_pw, id=fid)
        yield Button(self.submit_label, id="action")
        yield Static(id="status")

    async def on_button_pressed(self, event: Button.Pressed) -> None:  # pyright: ignore[reportUnknownArgumentType]
        if event.button.id != "action":
            return
        data = {
            fid: self.query_one(f"#{fid}", Input).value for _, fid, _ in self.fields
        }
        status = self.query_one("#status", Static)
        try:
            msg = await self.submit_cb(self.session, **data)
        except (httpx.HTTPError, RuntimeError) as exc:
            status.update(f"{self.submit_label} failed: {exc}")
            return
        status.update(msg or f"{self.submit_label} succeeded")
        await self.action_quit()


def _stored_session(host: str) -> Session:
    if not COOKIE_PATH.exists():
        typer.echo("Please login first.")
        raise typer.Exit(code=1)
    return Session(host, COOKIE_PATH.read_text().strip())


async def _login_form(session: Session, *, user: str, password: str) -> str | None:
    await perform_login(session.host, user, password, COOKIE_PATH)
    return None


async def _key_form(session: Session, *, api_key: str) -> str | None:
    if not await key_request(session, api_key):
        raise RuntimeError("key was not saved")
    return "Key saved"


HOST_OPTION = typer.Option("http://localhost:8000", "--host", help="Server URL")


@app.command()  # pyright: ignore[reportUntypedFunctionDecorator]
def login(host: str = HOST_OPTION) -> None:
    """Log in to the server."""
    FormApp(
        Session(host),
        fields=[("Username", "user", False), ("Password", "password", True)],
        submit_label="Login",
        submit_cb=_login_form,
    ).run()


@app.command()  # pyright: ignore[reportUntypedFunctionDecorator]
def key(host: str = HOST_OPTION) -> None:
    """Store your DeepSeek API key."""
    FormApp(
        _stored_session(host),
        fields=[("DeepSeek API key", "api_key", True)],
        submit_label="Save",
        submit_cb=_key_form,
    ).run()


async def _print_completion(session: Session, **request: typing.Any) -> bool:
    ok = False
    async for event in stream_completion(session, **request):
        match event:
            case FormIdEvent(form_id=form_id):
                typer.echo(f"form {form_id}", err=True)
            case ChunkEvent(content=content):
                typer.echo(content, nl=False)
            case DoneEvent():
                typer.echo("")
                ok = True
            case ErrorEvent(error=error) | RejectionEvent(error=error):
                typer.echo(f"error: {error}", err=True)
    return ok


def _read_client_info(path: Path) -> typing.Any:
    try:
        return msgspec_json.decode(path.read_bytes())
    except msgspec.DecodeError as exc:
        raise typer.BadParameter(
            f"{path} is not valid JSON: {exc}", param_hint="--client"
        ) from exc


@app.command()  # pyright: ignore[reportUntypedFunctionDecorator]
def complete(
    form_file: Path = typer.Argument(..., exists=True, help="Form to complete"),
    title: str | None = typer.Option(
        None, "--title", help="Title, defaults to the file name"
    ),
    client_file: Path | None = typer.Option(
        None, "--client", exists=True, help="JSON file with client information"
    ),
    template: str = typer.Option("default", "--template", help="Template name"),
    host: str = HOST_OPTION,
) -> None:
    """Complete a form and print the result as it streams in."""
    session = _stored_session(host)
    client_info = _read_client_info(client_file) if client_file else {}
    ok = asyncio.run(
        _print_completion(
            session,
            title=title or form_file.stem,
            form_content=form_file.read_text(),
            client_info=client_info,
            template_name=template,
        )
    )
    if not ok:
        raise typer.Exit(code=1)


__all__ = [
    "app",
    "key_request",
    "perform_login",
    "stream_completion",
]
