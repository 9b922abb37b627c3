"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 12:00:00.000000

Creates the full schema:
1. Enum types for user roles, book request status and book audit action
2. Reference tables (courses, authors, categories)
3. Accounts with OTP lockout state and their teacher/student profiles
4. Book requests, books, their soft-deletable association rows and audits
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


user_role_enum = postgresql.ENUM(
    "ADMIN",
    "TEACHER",
    "STUDENT",
    "INSTITUTION",
    name="user_role",
    create_type=False,
)
book_request_status_enum = postgresql.ENUM(
    "PENDING",
    "APPROVED",
    "DENIED",
    "PUBLISHED",
    name="book_request_status",
    create_type=False,
)
book_audit_action_enum = postgresql.ENUM(
    "CREATED",
    "UPDATED",
    name="book_audit_action",
    create_type=False,
)


def _base_columns(soft_delete: bool = True) -> list[sa.Column]:
    """Primary key and timestamps shared by every table (from BaseModel)."""
    columns = [
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]
    if soft_delete:
        columns.append(sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True))
    return columns


def _link_table(name: str, owner: str, owner_table: str, target: str, target_table: str) -> None:
    op.create_table(
        name,
        *_base_columns(),
        sa.Column(owner, postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column(target, postgresql.UUID(as_uuid=False), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint([owner], [f"{owner_table}.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint([target], [f"{target_table}.id"], ondelete="CASCADE"),
    )
    op.create_index(op.f(f"ix_{name}_{owner}"), name, [owner], unique=False)
    op.create_index(op.f(f"ix_{name}_{target}"), name, [target], unique=False)


def upgrade() -> None:
    """Create all enum types and tables."""
    bind = op.get_bind()
    user_role_enum.create(bind, checkfirst=True)
    book_request_status_enum.create(bind, checkfirst=True)
    book_audit_action_enum.create(bind, checkfirst=True)

    # Reference tables
    for table in ("courses", "authors", "categories"):
        columns = [sa.Column("name", sa.String(length=200), nullable=False)]
        if table == "courses":
            columns.append(sa.Column("description", sa.Text(), nullable=True))
        op.create_table(table, *_base_columns(), *columns, sa.PrimaryKeyConstraint("id"))
        op.create_index(op.f(f"ix_{table}_name"), table, ["name"], unique=False)

    # Accounts
    op.create_table(
        "users",
        *_base_columns(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("dni", sa.String(length=50), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("supabase_user_id", sa.String(length=255), nullable=True),
        sa.Column("failed_otp_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("otp_locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dni", name="uq_users_dni"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(
        op.f("ix_users_supabase_user_id"), "users", ["supabase_user_id"], unique=True
    )

    for profile in ("teachers", "students"):
        op.create_table(
            profile,
            *_base_columns(),
            sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("user_id", name=f"uq_{profile}_user_id"),
        )

    _link_table("teacher_courses", "teacher_id", "teachers", "course_id", "courses")
    _link_table("student_courses", "student_id", "students", "course_id", "courses")

    # Book requests
    op.create_table(
        "book_requests",
        *_base_columns(),
        sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("author_name", sa.String(length=200), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("animations", postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column("status", book_request_status_enum, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index(op.f("ix_book_requests_user_id"), "book_requests", ["user_id"], unique=False)
    op.create_index("ix_book_requests_status", "book_requests", ["status"], unique=False)

    _link_table("book_request_courses", "book_request_id", "book_requests", "course_id", "courses")

    op.create_table(
        "book_request_status_audits",
        *_base_columns(soft_delete=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("book_request_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("previous_status", book_request_status_enum, nullable=False),
        sa.Column("current_status", book_request_status_enum, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["book_request_id"], ["book_requests.id"], ondelete="CASCADE"),
    )
    op.create_index(
        op.f("ix_book_request_status_audits_book_request_id"),
        "book_request_status_audits",
        ["book_request_id"],
        unique=False,
    )

    # Books
    op.create_table(
        "books",
        *_base_columns(),
        sa.Column("name", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(length=1000), nullable=True),
        sa.Column("animations", postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column("book_request_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["book_request_id"], ["book_requests.id"], ondelete="SET NULL"),
    )
    op.create_index(op.f("ix_books_book_request_id"), "books", ["book_request_id"], unique=False)

    _link_table("book_courses", "book_id", "books", "course_id", "courses")
    _link_table("book_authors", "book_id", "books", "author_id", "authors")
    _link_table("book_categories", "book_id", "books", "category_id", "categories")

    op.create_table(
        "book_audits",
        *_base_columns(soft_delete=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("author", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(length=1000), nullable=True),
        sa.Column("category", sa.String(length=200), nullable=False),
        sa.Column("animations", postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column("course_ids", postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column("action", book_audit_action_enum, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("book_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("book_request_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["book_request_id"], ["book_requests.id"], ondelete="SET NULL"),
    )
    op.create_index(op.f("ix_book_audits_book_id"), "book_audits", ["book_id"], unique=False)


def downgrade() -> None:
    """Drop every table, then the enum types."""
    for table in (
        "book_audits",
        "book_categories",
        "book_authors",
        "book_courses",
        "books",
        "book_request_status_audits",
        "book_request_courses",
        "book_requests",
        "student_courses",
        "teacher_courses",
        "students",
        "teachers",
        "users",
        "categories",
        "authors",
        "courses",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    book_audit_action_enum.drop(bind, checkfirst=True)
    book_request_status_enum.drop(bind, checkfirst=True)
    user_role_enum.drop(bind, checkfirst=True)
