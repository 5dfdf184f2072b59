"""Pytest configuration for tests directory."""
from datetime import datetime
from typing import Any, Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from pillar.domain.common.types import generate_id
from pillar.infra.db.base import Base, build_session_factory
from pillar.infra.db.models import BoardModel, TaskModel  # noqa: F401  (registers all tables)
from pillar.infra.db.repositories.preference_repo import PreferenceRepository
from pillar.settings import get_config_store

USER_ID = "user-1"
OTHER_USER_ID = "user-2"

DEFAULT_COLUMNS = [
    {"id": "todo", "name": "To do", "order": 0},
    {"id": "doing", "name": "Doing", "order": 1},
    {"id": "done", "name": "Done", "order": 2},
]


def pytest_configure(config):
    """Register markers and ensure asyncio_mode=auto."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async (requires pytest-asyncio)"
    )
    # Force asyncio_mode=auto so async tests/fixtures run without @pytest.mark.asyncio on each
    config.option.asyncio_mode = getattr(config.option, "asyncio_mode", None) or "auto"


@pytest.fixture
async def engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation instant: Sunday 15 Feb 2026, 12:00 UTC."""
    return datetime(2026, 2, 15, 12, 0)


@pytest.fixture
def override_settings():
    """Apply runtime settings overrides for one test."""
    store = get_config_store()
    yield store.update
    store.clear_overrides()


@pytest.fixture
def make_board(db_session):
    async def _make(user_id: str = USER_ID, columns: Optional[list] = None) -> BoardModel:
        board = BoardModel(
            id=generate_id(),
            user_id=user_id,
            name="Board",
            columns=columns if columns is not None else list(DEFAULT_COLUMNS),
        )
        db_session.add(board)
        await db_session.commit()
        return board

    return _make


@pytest.fixture
def make_task(db_session, make_board):
    """Create a task (and a board for it unless board_id is given)."""

    async def _make(user_id: str = USER_ID, **fields: Any) -> TaskModel:
        board_id = fields.pop("board_id", None)
        if board_id is None:
            board_id = (await make_board(user_id)).id
        task = TaskModel(
            id=generate_id(),
            user_id=user_id,
            board_id=board_id,
            column_id=fields.pop("column_id", "todo"),
            title=fields.pop("title", "Write report"),
            **fields,
        )
        db_session.add(task)
        await db_session.commit()
        return task

    return _make


@pytest.fixture
def set_prefs(db_session):
    """Create or update a user's notification preferences."""

    async def _set(user_id: str = USER_ID, **values: Any):
        return await PreferenceRepository(db_session).update(user_id, values)

    return _set


@pytest.fixture
def reload_task(session_factory):
    """Read a task through a fresh session (no identity-map staleness)."""

    async def _reload(task_id: str) -> TaskModel:
        async with session_factory() as session:
            return await session.get(TaskModel, task_id)

    return _reload
