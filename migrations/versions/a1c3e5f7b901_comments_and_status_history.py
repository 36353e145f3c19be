"""Comments & comment status history tables

Revision ID: a1c3e5f7b901
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "a1c3e5f7b901"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "comments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("document_id", sa.String(64), nullable=False, index=True),
        sa.Column("user_id", sa.String(64), nullable=False, index=True),
        sa.Column("author_name", sa.String(255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("content_type", sa.String(20), nullable=False, server_default="text"),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("selected_text", sa.Text(), nullable=True),
        sa.Column("selection_start", sa.Integer(), nullable=True),
        sa.Column("selection_end", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("parent_comment_id", sa.String(36), nullable=True, index=True),
        sa.Column("priority", sa.String(20), nullable=True),
        sa.Column("admin_comment_type", sa.String(40), nullable=True),
        sa.Column("admin_metadata_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_comment_document_status", "comments", ["document_id", "status"])
    op.create_index("idx_comment_document_created", "comments", ["document_id", "created_at"])

    op.create_table(
        "comment_status_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("comment_id", sa.String(36), sa.ForeignKey("comments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("old_status", sa.String(20), nullable=False),
        sa.Column("new_status", sa.String(20), nullable=False),
        sa.Column("changed_by", sa.String(64), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
    )
    op.create_index("idx_status_history_comment", "comment_status_history", ["comment_id", "changed_at"])
    op.create_index("idx_status_history_new_status", "comment_status_history", ["new_status", "changed_at"])


def downgrade():
    op.drop_index("idx_status_history_new_status", table_name="comment_status_history")
    op.drop_index("idx_status_history_comment", table_name="comment_status_history")
    op.drop_table("comment_status_history")
    op.drop_index("idx_comment_document_created", table_name="comments")
    op.drop_index("idx_comment_document_status", table_name="comments")
    op.drop_table("comments")
