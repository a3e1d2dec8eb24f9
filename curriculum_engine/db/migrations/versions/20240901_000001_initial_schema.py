"""Initial curriculum hierarchy schema."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20240901_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "lessons",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("context", sa.String(length=128), nullable=False),
        sa.Column("lesson_number", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("context", "lesson_number", name="uq_lessons_context_number"),
    )
    op.create_index(op.f("ix_lessons_context"), "lessons", ["context"], unique=False)

    op.create_table(
        "half_terms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("context", sa.String(length=128), nullable=False),
        sa.Column("half_term_id", sa.String(length=8), nullable=False),
        sa.Column("lessons", sa.JSON(), nullable=False),
        sa.Column("stacks", sa.JSON(), nullable=False),
        sa.Column("is_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("context", "half_term_id", name="uq_half_terms_context_term"),
    )
    op.create_index(op.f("ix_half_terms_context"), "half_terms", ["context"], unique=False)

    op.create_table(
        "lesson_stacks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("context", sa.String(length=128), nullable=False),
        sa.Column("stack_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("context", "stack_id", name="uq_lesson_stacks_context_stack"),
    )
    op.create_index(op.f("ix_lesson_stacks_context"), "lesson_stacks", ["context"], unique=False)

    op.create_table(
        "units",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("context", sa.String(length=128), nullable=False),
        sa.Column("unit_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("context", "unit_id", name="uq_units_context_unit"),
    )
    op.create_index(op.f("ix_units_context"), "units", ["context"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_units_context"), table_name="units")
    op.drop_table("units")
    op.drop_index(op.f("ix_lesson_stacks_context"), table_name="lesson_stacks")
    op.drop_table("lesson_stacks")
    op.drop_index(op.f("ix_half_terms_context"), table_name="half_terms")
    op.drop_table("half_terms")
    op.drop_index(op.f("ix_lessons_context"), table_name="lessons")
    op.drop_table("lessons")
