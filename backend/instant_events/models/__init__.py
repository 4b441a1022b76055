"""ORM Models: SQLAlchemy declarative models backing the document store.

Invariants:
    - All models inherit from Base (db/base.py)

Design Decisions:
    - Models imported here so Base.metadata is complete for create_all and alembic
"""

from instant_events.models.document import Document  # noqa: F401
