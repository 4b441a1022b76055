"""Store Protocols: contract between the managers and the document store.

Invariants:
    - Core NEVER imports from infrastructure; implementations are injected
    - A transaction body only calls Transaction methods and pure functions
      (it may be re-run any number of times on conflict)
    - Writes are buffered and become visible only when the whole body commits
    - SERVER_TIMESTAMP in a top-level write field is replaced by the commit time

Design Decisions:
    - Protocol over ABC: structural subtyping, tests may pass fakes
    - Async reads, sync buffered writes: only reads touch IO inside the body
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, TypeVar

T = TypeVar("T")


class _ServerTimestamp:
    """Sentinel: resolved to the store's commit time on write."""

    _instance: "_ServerTimestamp | None" = None

    def __new__(cls) -> "_ServerTimestamp":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time view of one document as read inside a transaction."""
    path: str
    exists: bool
    data: dict[str, Any] = field(default_factory=dict)
    version: int | None = None

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class Transaction(Protocol):
    """Read-then-write unit handed to a transaction body."""

    async def get(self, path: str) -> DocumentSnapshot: ...

    async def list_children(self, collection_path: str) -> list[DocumentSnapshot]: ...

    def new_document_path(self, collection_path: str) -> str: ...

    def create(self, path: str, data: dict[str, Any]) -> None: ...

    def update(self, path: str, fields: dict[str, Any]) -> None: ...


class DocumentStore(Protocol):
    """Transactional document store with optimistic conflict retry."""

    async def run_transaction(
        self, body: Callable[[Transaction], Awaitable[T]],
    ) -> T: ...
