"""Infrastructure Layer: database sessions, the SQL document store, logging setup.

Invariants:
    - All SQLAlchemy failures mapped to DatabaseError (core/errors.py)
    - Optimistic conflicts retried with backoff, never surfaced as DatabaseError

Design Decisions:
    - Resilient wrappers over raw clients: retry logic stays out of the managers
"""
