"""Shared pytest fixtures for the test suite."""
import sys
import typing
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BASE_DIR / "src"))
sys.path.insert(0, str(BASE_DIR))

import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from formstream.crypto import KeyCipher
from formstream.models import ApiKey, Base, UserAccount
from tests.helpers import ADMIN_API_KEY

pytest_plugins = ["pytest_httpx"]


@pytest.fixture()
def cipher() -> KeyCipher:
    """Return a cipher with a fresh random secret."""
    return KeyCipher(Fernet.generate_key())


@pytest_asyncio.fixture()
async def db_session_factory(
    cipher: KeyCipher,
) -> typing.AsyncIterator[typing.Callable[[], AsyncSession]]:
    """Yield a session factory for a database holding two users.

    ``admin`` has a stored API key; ``bob`` has none.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async_session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with engine.begin() as conn, async_session_factory() as session:
        await conn.run_sync(Base.metadata.create_all)
        async with session.begin():
            admin = UserAccount(google_sub="admin", email="admin@example.com")
            bob = UserAccount(google_sub="bob", email="bob@example.com")
            session.add_all([admin, bob])
            await session.flush()
            session.add(
                ApiKey(
                    user_id=admin.id,
                    encrypted_key=cipher.encrypt_api_key(ADMIN_API_KEY),
                )
            )

    def factory() -> AsyncSession:
        return async_session_factory()

    yield factory
    await engine.dispose()
