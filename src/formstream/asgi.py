"""ASGI entry point, e.g. ``uvicorn formstream.asgi:app``."""

from __future__ import annotations

import os

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from .app import create_app

engine = create_async_engine(os.environ["DATABASE_URL"])
app = create_app(
    db_session_factory=async_sessionmaker(engine, expire_on_commit=False),
)
