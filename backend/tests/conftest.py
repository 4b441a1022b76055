"""Root conftest: file-backed SQLite document store shared by all test packages.

Invariants:
    - Every test gets a fresh SQLite database file under tmp_path
    - Fixtures seed documents directly through the ORM, bypassing transactions
    - FakeClock lets tests pin "now" relative to event end dates

Design Decisions:
    - File database instead of :memory:: concurrent transactions need separate
      connections that still see the same data
    - base_delay_ms=0: conflict retries do not slow the suite down
"""

import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

# Ensure tests never reach a real database by accident
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")

from instant_events.core.domain_types import MemberId  # noqa: E402
from instant_events.db.base import Base  # noqa: E402
from instant_events.infrastructure.database import DatabaseSessionManager  # noqa: E402
from instant_events.infrastructure.document_store import SqlDocumentStore, split_path  # noqa: E402
from instant_events.models.document import Document  # noqa: E402


class FakeClock:
    """Callable clock with a settable current instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
async def db_manager(tmp_path):
    manager = DatabaseSessionManager(
        f"sqlite+aiosqlite:///{tmp_path / 'documents.db'}",
    )
    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield manager
    await manager.dispose()


@pytest.fixture
def store(db_manager):
    return SqlDocumentStore(db_manager, max_attempts=5, base_delay_ms=0)


@pytest.fixture
def seed_document(db_manager):
    """Insert a document directly, as an external writer would."""
    async def _seed(path: str, data: dict | None = None) -> None:
        parent, doc_id = split_path(path)
        async with db_manager.session() as session:
            session.add(Document(
                path=path, parent_path=parent, doc_id=doc_id,
                data=data or {}, version=1,
            ))
            await session.commit()
    return _seed


@pytest.fixture
def read_document(db_manager):
    """Read the raw stored row: (version, data) or None."""
    async def _read(path: str) -> tuple[int, dict] | None:
        async with db_manager.session() as session:
            row = (await session.execute(
                select(Document.version, Document.data).where(Document.path == path),
            )).one_or_none()
        return None if row is None else (row.version, row.data)
    return _read


@pytest.fixture
def count_children(db_manager):
    async def _count(collection_path: str) -> int:
        async with db_manager.session() as session:
            result = await session.execute(
                select(Document.path).where(Document.parent_path == collection_path),
            )
            return len(result.all())
    return _count


@pytest.fixture
async def member(seed_document):
    await seed_document("members/m1", {"displayName": "Host"})
    return MemberId("m1")
