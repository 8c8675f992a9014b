"""Helpers shared by the HTTP-level tests."""
from __future__ import annotations

import base64
import typing

from msgspec import json as msgspec_json
from httpx import ASGITransport, AsyncClient

from formstream.session import SessionManager

if typing.TYPE_CHECKING:
    from falcon import asgi

SESSION_SECRET = "test-secret"
ADMIN_API_KEY = "sk-admin"


def make_client(app: asgi.App, *, cookie: str | None = None) -> AsyncClient:
    """Return an HTTP client that talks to *app* in-process."""
    return AsyncClient(
        transport=ASGITransport(app=typing.cast("typing.Any", app)),
        base_url="https://test",
        cookies={"session": cookie} if cookie is not None else None,
    )


def session_cookie(user: str, secret: str = SESSION_SECRET) -> str:
    """Return a valid session cookie for *user*."""
    return SessionManager(secret, 3600).create_cookie(user)


async def login(
    client: AsyncClient, user: str = "admin", password: str = "adminpass"
) -> None:
    """Log in through the Basic Auth endpoint, keeping the session cookie."""
    credentials = base64.b64encode(f"{user}:{password}".encode()).decode()
    resp = await client.post(
        "/login", headers={"Authorization": f"Basic {credentials}"}
    )
    assert resp.status_code == 200
    assert "session" in resp.cookies


def parse_sse(body: str) -> list[dict[str, typing.Any]]:
    """Decode every ``data:`` frame in an SSE body, in order."""
    frames: list[dict[str, typing.Any]] = []
    for block in body.split("\n\n"):
        if not block.strip():
            continue
        data_lines = [
            line[len("data:") :].strip()
            for line in block.splitlines()
            if line.startswith("data:")
        ]
        assert data_lines, f"unexpected SSE block: {block!r}"
        frames.append(msgspec_json.decode("\n".join(data_lines)))
    return frames
