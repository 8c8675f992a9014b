from __future__ import annotations

import pytest
import sqlalchemy as sa
from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from formstream.models import ApiKey, Base, Form, FormStatus, UserAccount


@pytest.fixture()
def engine() -> sa.Engine:
    engine = sa.create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return engine


def test_metadata_creates_tables(engine: sa.Engine) -> None:
    tables = set(sa.inspect(engine).get_table_names())
    assert {"user_account", "api_key", "form"}.issubset(tables)


def test_new_form_is_pending(engine: sa.Engine) -> None:
    with Session(engine) as session:
        user = UserAccount(google_sub="123", email="u@example.com")
        session.add(user)
        session.flush()
        form = Form(
            user_id=user.id,
            title="Intake",
            form_content="Name:",
            client_info={"name": "Ada"},
        )
        session.add(form)
        session.commit()
        stored = session.get(Form, form.id)
        assert stored is not None
        assert stored.status == FormStatus.PENDING
        assert stored.completed_content is None
        assert stored.client_info == {"name": "Ada"}
        assert stored.created_at is not None
        assert user.forms == [stored]


def test_status_stored_as_lowercase_value(engine: sa.Engine) -> None:
    with Session(engine) as session:
        user = UserAccount(google_sub="123", email="u@example.com")
        session.add(user)
        session.flush()
        session.add(
            Form(
                user_id=user.id,
                title="t",
                form_content="c",
                status=FormStatus.COMPLETED,
            )
        )
        session.commit()
    with engine.connect() as conn:
        raw = conn.execute(sa.text("SELECT status FROM form")).scalar_one()
    assert raw == "completed"


def test_one_api_key_per_user(engine: sa.Engine) -> None:
    with Session(engine) as session:
        user = UserAccount(google_sub="1", email="a@example.com")
        session.add(user)
        session.flush()
        session.add(ApiKey(user_id=user.id, encrypted_key=b"x"))
        session.commit()
        session.add(ApiKey(user_id=user.id, encrypted_key=b"y"))
        with pytest.raises(sa_exc.IntegrityError):
            session.commit()


def test_unique_email(engine: sa.Engine) -> None:
    with Session(engine) as session:
        session.add(UserAccount(google_sub="1", email="a@example.com"))
        session.commit()
        session.add(UserAccount(google_sub="2", email="a@example.com"))
        with pytest.raises(sa_exc.IntegrityError):
            session.commit()
