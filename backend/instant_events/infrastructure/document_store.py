"""SQL Document Store: path-addressed documents with optimistic multi-document transactions.

Invariants:
    - A transaction body sees committed state; its writes are buffered until commit
    - Reads must precede writes inside one body (read-then-write protocol)
    - Commit validates the whole read-set: a document read at version N is only
      committed against if it is still at version N (read-write and write-write
      conflicts both abort the attempt)
    - Commit touches rows in path-sorted order (no lock-order deadlocks)
    - A conflicting attempt is rolled back and the body re-run, up to max_attempts;
      then TransactionUnavailableError is raised
    - Exceptions raised by the body abort the attempt with nothing written and
      propagate unchanged (no retry)
    - Commit times are monotonic non-decreasing per store instance

Design Decisions:
    - Version column + conditional UPDATE instead of SELECT ... FOR UPDATE:
      identical behaviour on SQLite (tests) and PostgreSQL (production)
    - Read-only transactions re-check versions instead of taking write locks
    - SERVER_TIMESTAMP resolved only at top level of a write payload;
      nested values are stored as given
    - ±25% jitter on backoff: racing writers do not retry in lockstep
"""

import asyncio
import logging
import random
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from instant_events.core.errors import TransactionUnavailableError
from instant_events.core.store_protocols import (
    SERVER_TIMESTAMP, DocumentSnapshot, Transaction,
)
from instant_events.infrastructure.database import DatabaseSessionManager
from instant_events.models.document import Document

logger = logging.getLogger(__name__)

T = TypeVar("T")

AUTO_ID_LENGTH = 20
_AUTO_ID_ALPHABET = string.ascii_letters + string.digits
_TIMESTAMP_TAG = "__timestamp__"


class WriteConflict(Exception):
    """Committed state moved since the transaction read it."""

    def __init__(self, path: str):
        super().__init__(f"Write conflict on '{path}'")
        self.path = path


def generate_auto_id() -> str:
    return "".join(
        secrets.choice(_AUTO_ID_ALPHABET) for _ in range(AUTO_ID_LENGTH)
    )


def split_path(path: str) -> tuple[str, str]:
    """Split a document path into (collection path, document id)."""
    parent, _, doc_id = path.rpartition("/")
    if not parent or not doc_id:
        raise ValueError(f"Invalid document path: {path!r}")
    return parent, doc_id


# ─── Field codec ────────────────────────────────────────────────

def _encode_value(value: Any, commit_time: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return {_TIMESTAMP_TAG: commit_time.isoformat()}
    if isinstance(value, datetime):
        return {_TIMESTAMP_TAG: value.isoformat()}
    return value


def _decode_value(value: Any) -> Any:
    if isinstance(value, dict) and set(value) == {_TIMESTAMP_TAG}:
        return datetime.fromisoformat(value[_TIMESTAMP_TAG])
    return value


def encode_fields(fields: dict[str, Any], commit_time: datetime) -> dict[str, Any]:
    return {k: _encode_value(v, commit_time) for k, v in fields.items()}


def decode_fields(data: dict[str, Any]) -> dict[str, Any]:
    return {k: _decode_value(v) for k, v in data.items()}


# ─── Transaction ────────────────────────────────────────────────

@dataclass
class _PendingWrite:
    kind: str  # "create" | "update"
    path: str
    fields: dict[str, Any]


class SqlTransaction:
    """One attempt of a transaction body against an AsyncSession."""

    def __init__(self, session: AsyncSession):
        self._session = session
        # path -> (version seen or None when missing, raw stored data)
        self._reads: dict[str, tuple[int | None, dict[str, Any]]] = {}
        self._writes: dict[str, _PendingWrite] = {}

    @property
    def has_writes(self) -> bool:
        return bool(self._writes)

    def _record_read(
        self, path: str, version: int | None, data: dict[str, Any],
    ) -> None:
        seen = self._reads.get(path)
        if seen is not None and seen[0] != version:
            raise WriteConflict(path)
        self._reads[path] = (version, data)

    def _ensure_no_writes(self) -> None:
        if self._writes:
            raise RuntimeError("Transaction reads must be executed before writes")

    async def get(self, path: str) -> DocumentSnapshot:
        split_path(path)
        self._ensure_no_writes()
        row = (await self._session.execute(
            select(Document.version, Document.data).where(Document.path == path),
        )).one_or_none()
        if row is None:
            self._record_read(path, None, {})
            return DocumentSnapshot(path=path, exists=False)
        self._record_read(path, row.version, row.data)
        return DocumentSnapshot(
            path=path, exists=True,
            data=decode_fields(row.data), version=row.version,
        )

    async def list_children(self, collection_path: str) -> list[DocumentSnapshot]:
        self._ensure_no_writes()
        result = await self._session.execute(
            select(Document.path, Document.version, Document.data)
            .where(Document.parent_path == collection_path)
            .order_by(Document.doc_id),
        )
        snapshots = []
        for row in result.all():
            self._record_read(row.path, row.version, row.data)
            snapshots.append(DocumentSnapshot(
                path=row.path, exists=True,
                data=decode_fields(row.data), version=row.version,
            ))
        return snapshots

    def new_document_path(self, collection_path: str) -> str:
        return f"{collection_path}/{generate_auto_id()}"

    def create(self, path: str, data: dict[str, Any]) -> None:
        split_path(path)
        self._add_write(_PendingWrite("create", path, dict(data)))

    def update(self, path: str, fields: dict[str, Any]) -> None:
        seen = self._reads.get(path)
        if seen is None or seen[0] is None:
            raise RuntimeError(
                f"Update of '{path}' requires reading the existing document first",
            )
        self._add_write(_PendingWrite("update", path, dict(fields)))

    def _add_write(self, write: _PendingWrite) -> None:
        if write.path in self._writes:
            raise RuntimeError(f"Document '{write.path}' already written in this transaction")
        self._writes[write.path] = write

    # ─── Commit ─────────────────────────────────────────────────

    async def commit(self, commit_time: datetime | None) -> None:
        """Validate the read-set and apply buffered writes atomically.

        Raises WriteConflict when committed state moved since it was read.
        """
        if not self._writes:
            await self._verify_reads()
            await self._session.commit()
            return
        if commit_time is None:
            raise ValueError("commit_time is required when writes are pending")

        for path in sorted(set(self._reads) | set(self._writes)):
            write = self._writes.get(path)
            if write is None:
                await self._hold_unchanged(path)
            elif write.kind == "create":
                await self._insert(write, commit_time)
            else:
                await self._apply_update(write, commit_time)
        await self._session.commit()

    async def _current_version(self, path: str) -> int | None:
        return (await self._session.execute(
            select(Document.version).where(Document.path == path),
        )).scalar_one_or_none()

    async def _verify_reads(self) -> None:
        for path, (version, _) in sorted(self._reads.items()):
            if await self._current_version(path) != version:
                raise WriteConflict(path)

    async def _hold_unchanged(self, path: str) -> None:
        """Version-check a document that was read but not written."""
        version, _ = self._reads[path]
        if version is None:
            if await self._current_version(path) is not None:
                raise WriteConflict(path)
            return
        # No-op conditional update: takes the row lock and proves the version.
        result = await self._session.execute(
            update(Document)
            .where(Document.path == path, Document.version == version)
            .values(version=Document.version)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            raise WriteConflict(path)

    async def _insert(self, write: _PendingWrite, commit_time: datetime) -> None:
        if write.path in self._reads and self._reads[write.path][0] is not None:
            raise WriteConflict(write.path)
        parent, doc_id = split_path(write.path)
        try:
            await self._session.execute(
                insert(Document).values(
                    path=write.path,
                    parent_path=parent,
                    doc_id=doc_id,
                    data=encode_fields(write.fields, commit_time),
                    version=1,
                ),
            )
        except IntegrityError as e:
            raise WriteConflict(write.path) from e

    async def _apply_update(self, write: _PendingWrite, commit_time: datetime) -> None:
        version, raw = self._reads[write.path]
        merged = {**raw, **encode_fields(write.fields, commit_time)}
        result = await self._session.execute(
            update(Document)
            .where(Document.path == write.path, Document.version == version)
            .values(data=merged, version=version + 1)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            raise WriteConflict(write.path)


# ─── Store ──────────────────────────────────────────────────────

class SqlDocumentStore:
    """DocumentStore backed by the `documents` table."""

    def __init__(
        self,
        db: DatabaseSessionManager,
        max_attempts: int = 5,
        base_delay_ms: int = 20,
        max_delay_ms: int = 1000,
        clock: Callable[[], datetime] | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._db = db
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_commit_time: datetime | None = None

    async def run_transaction(
        self, body: Callable[[Transaction], Awaitable[T]],
    ) -> T:
        """Run body until it commits without conflict or attempts run out."""
        for attempt in range(1, self.max_attempts + 1):
            async with self._db.session() as session:
                txn = SqlTransaction(session)
                try:
                    result = await body(txn)
                    commit_time = self._next_commit_time() if txn.has_writes else None
                    await txn.commit(commit_time)
                    return result
                except WriteConflict as e:
                    await session.rollback()
                    logger.warning(
                        f"Transaction conflict on {e.path} "
                        f"(attempt {attempt}/{self.max_attempts})",
                        extra={"attempt": attempt},
                    )
            if attempt < self.max_attempts:
                await asyncio.sleep(self._backoff(attempt) / 1000)

        logger.error(
            f"Transaction gave up after {self.max_attempts} attempts",
            extra={"attempt": self.max_attempts},
        )
        raise TransactionUnavailableError(self.max_attempts)

    def _next_commit_time(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        if self._last_commit_time is not None and now < self._last_commit_time:
            now = self._last_commit_time
        self._last_commit_time = now
        return now

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** (attempt - 1)) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311
