"""Database Layer: SQLAlchemy declarative base shared by models and migrations.

Invariants:
    - All sessions are async (AsyncSession), created by DatabaseSessionManager

Design Decisions:
    - asyncpg driver for PostgreSQL, aiosqlite for local runs and tests
"""
