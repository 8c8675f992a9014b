"""Database access for users, API keys and forms."""

from __future__ import annotations

import typing

from sqlalchemy import delete, select, update

from .models import ApiKey, Form, FormStatus, UserAccount

if typing.TYPE_CHECKING:  # pragma: no cover
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

__all__ = [
    "SessionFactory",
    "create_form",
    "delete_api_key",
    "get_api_key_record",
    "get_form",
    "list_forms",
    "load_user_id",
    "store_api_key",
    "update_form",
]

SessionFactory: typing.TypeAlias = typing.Callable[[], "AsyncSession"]


async def load_user_id(
    session_factory: SessionFactory, user_sub: str
) -> uuid.UUID | None:
    """Return the id of the account whose login subject is *user_sub*."""
    async with session_factory() as session:
        stmt = select(UserAccount.id).where(UserAccount.google_sub == user_sub)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()


async def get_api_key_record(
    session_factory: SessionFactory, user_id: uuid.UUID
) -> ApiKey | None:
    """Return the stored key record for *user_id*, if one exists."""
    async with session_factory() as session:
        stmt = select(ApiKey).where(ApiKey.user_id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()


async def store_api_key(
    session_factory: SessionFactory, user_id: uuid.UUID, encrypted_key: bytes
) -> None:
    """Create or replace the encrypted key for *user_id*."""
    async with session_factory() as session, session.begin():
        stmt = select(ApiKey).where(ApiKey.user_id == user_id)
        record = (await session.execute(stmt)).scalar_one_or_none()
        if record is None:
            session.add(ApiKey(user_id=user_id, encrypted_key=encrypted_key))
        else:
            record.encrypted_key = encrypted_key


async def delete_api_key(
    session_factory: SessionFactory, user_id: uuid.UUID
) -> bool:
    """Remove the key for *user_id* and report whether one existed."""
    async with session_factory() as session, session.begin():
        stmt = delete(ApiKey).where(ApiKey.user_id == user_id)
        result = await session.execute(stmt)
        return bool(result.rowcount)


async def create_form(
    session_factory: SessionFactory,
    *,
    user_id: uuid.UUID,
    title: str,
    form_content: str,
    client_info: typing.Any,
    template_name: str | None,
) -> Form:
    """Insert a new ``pending`` form and return it."""
    async with session_factory() as session:
        form = Form(
            user_id=user_id,
            title=title,
            form_content=form_content,
            client_info=client_info,
            template_name=template_name,
            status=FormStatus.PENDING,
        )
        session.add(form)
        await session.commit()
        await session.refresh(form)
        return form


async def update_form(
    session_factory: SessionFactory,
    form_id: uuid.UUID,
    *,
    completed_content: str,
    status: FormStatus,
) -> None:
    """Attach the completed content to a form and move it to *status*."""
    async with session_factory() as session, session.begin():
        await session.execute(
            update(Form)
            .where(Form.id == form_id)
            .values(completed_content=completed_content, status=status)
        )


async def get_form(
    session_factory: SessionFactory, form_id: uuid.UUID, user_id: uuid.UUID
) -> Form | None:
    """Return the form if it exists and belongs to *user_id*."""
    async with session_factory() as session:
        stmt = select(Form).where(Form.id == form_id, Form.user_id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()


async def list_forms(
    session_factory: SessionFactory, user_id: uuid.UUID
) -> list[Form]:
    """Return the user's forms, newest first."""
    async with session_factory() as session:
        stmt = (
            select(Form)
            .where(Form.user_id == user_id)
            .order_by(Form.created_at.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
