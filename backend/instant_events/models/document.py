"""Document ORM: one row per path-addressed JSON document.

Invariants:
    - path is the primary key ("members/{uid}/instants/{eventId}/...")
    - parent_path is the collection path; children listed by parent_path, ordered by doc_id
    - version starts at 1 and increments on every committed update
    - data holds the document fields as JSON; server timestamps stored as tagged ISO strings

Design Decisions:
    - Single table for every collection: the store emulates a document tree,
      aggregate shape lives in the services, not in the schema
    - Integer version column instead of DB row locks: optimistic concurrency
      works the same on SQLite and PostgreSQL
"""

from sqlalchemy import String, Integer, JSON
from sqlalchemy.orm import Mapped, mapped_column

from instant_events.db.base import Base


class Document(Base):
    """A stored document addressed by its full path."""
    __tablename__ = "documents"

    path: Mapped[str] = mapped_column(String(512), primary_key=True)
    parent_path: Mapped[str] = mapped_column(
        String(512), nullable=False, index=True,
    )
    doc_id: Mapped[str] = mapped_column(String(128), nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
