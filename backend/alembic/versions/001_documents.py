"""Document store schema: one table of path-addressed JSON documents.

Revision ID: 001_documents
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_documents"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "documents",
        sa.Column("path", sa.String(512), primary_key=True),
        sa.Column("parent_path", sa.String(512), nullable=False),
        sa.Column("doc_id", sa.String(128), nullable=False),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
    )
    op.create_index(
        "ix_documents_parent_path", "documents", ["parent_path"],
    )


def downgrade() -> None:
    op.drop_index("ix_documents_parent_path", table_name="documents")
    op.drop_table("documents")
