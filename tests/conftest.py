"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os
from contextlib import contextmanager

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of lorehub.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from lorehub.constants import Role  # noqa: E402
from lorehub.database.models import Base, Post, ShopItem, User  # noqa: E402
from lorehub.database.seed import seed_catalogs  # noqa: E402

_user_seq = 0


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Lorehub tables.

    Uses StaticPool so all threads share the same in-memory database
    (``run_db`` and the TestClient both hop threads).  pysqlite's own
    transaction handling is switched off so SAVEPOINTs behave as on
    PostgreSQL.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def seeded_engine(db_engine: Engine) -> Engine:
    """``db_engine`` with the default achievement and shop catalogs."""
    seed_catalogs(db_engine)
    return db_engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def make_user(engine: Engine, *, coins: int = 0, role: str = Role.MEMBER, **fields) -> str:
    """Insert a user and return its id."""
    global _user_seq
    _user_seq += 1
    with Session(engine) as session:
        user = User(
            email=f"member{_user_seq}@lorehub.test",
            name=f"Member {_user_seq}",
            coins=coins,
            role=str(role),
            **fields,
        )
        session.add(user)
        session.commit()
        return user.id


def make_post(engine: Engine, author_id: str, *, status: str = "active") -> str:
    with Session(engine) as session:
        post = Post(author_id=author_id, title="How photosynthesis works",
                    content="Light, water, CO2.", status=status)
        session.add(post)
        session.commit()
        return post.id


def make_item(
    engine: Engine, *, name: str = "Dark Theme", type: str = "theme", price: int = 50,
) -> str:
    with Session(engine) as session:
        item = ShopItem(
            name=name,
            description=f"{name} for testing",
            type=type,
            price=price,
            image_url=f"/items/{name.lower().replace(' ', '-')}.png",
        )
        session.add(item)
        session.commit()
        return item.id


def get_user_row(engine: Engine, user_id: str) -> User:
    with Session(engine, expire_on_commit=False) as session:
        user = session.get(User, user_id)
        session.expunge(user)
        return user


@pytest.fixture
def user_id(db_engine: Engine) -> str:
    return make_user(db_engine)


# ---------------------------------------------------------------------------
# Race helpers
# ---------------------------------------------------------------------------
@contextmanager
def interleave(model, write, *, on: str = "update", nth: int = 1):
    """Run ``write(session)`` just before the *nth* ``on`` statement
    against *model* executes, inside the caller's own transaction.

    Stands in for a concurrent request whose write lands between a
    service's read and its conditional UPDATE/DELETE.  Yields a list that
    holds the intercepted statement once the write has run.
    """
    seen: list = []
    fired: list = []

    def _hook(state):
        if fired or not getattr(state, f"is_{on}"):
            return
        mapper = state.bind_mapper
        if mapper is None or mapper.class_ is not model:
            return
        seen.append(state.statement)
        if len(seen) < nth:
            return
        fired.append(state.statement)
        write(state.session)

    event.listen(Session, "do_orm_execute", _hook)
    try:
        yield fired
    finally:
        event.remove(Session, "do_orm_execute", _hook)
