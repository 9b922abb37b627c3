"""
Book Models

Books, book requests, their course/author/category associations and the
append-only audit tables for both.

Association rows are soft-deleted, never removed, so the history of what a
book was linked to survives updates.
"""

import enum

from sqlalchemy import Enum, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from visualizar.modules.shared import BaseModel, SoftDeleteMixin


class AnimationType(str, enum.Enum):
    """Animation packages a book can ship with."""

    ALL = "ALL"
    MAIN = "MAIN"
    EXTRA = "EXTRA"


class BookRequestStatus(str, enum.Enum):
    """Status of a book request."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    PUBLISHED = "PUBLISHED"


class BookAuditAction(str, enum.Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"


class BookRequest(SoftDeleteMixin, BaseModel):
    """
    A teacher's request for a new book.

    Starts PENDING. Only an admin moves it forward, and publishing a book
    from it is the only way to reach PUBLISHED.
    """

    __tablename__ = "book_requests"

    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    author_name: Mapped[str] = mapped_column(String(200), nullable=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    animations: Mapped[list] = mapped_column(JSON, nullable=False)
    status: Mapped[BookRequestStatus] = mapped_column(
        Enum(BookRequestStatus, name="book_request_status"),
        nullable=False,
        default=BookRequestStatus.PENDING,
    )

    courses: Mapped[list["BookRequestCourse"]] = relationship(
        "BookRequestCourse",
        back_populates="book_request",
        lazy="selectin",
    )

    __table_args__ = (Index("ix_book_requests_status", "status"),)

    @property
    def active_course_ids(self) -> list[str]:
        return [link.course_id for link in self.courses if link.deleted_at is None]


class BookRequestCourse(SoftDeleteMixin, BaseModel):
    __tablename__ = "book_request_courses"

    book_request_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("book_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    course_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    book_request: Mapped["BookRequest"] = relationship("BookRequest", back_populates="courses")


class BookRequestStatusAudit(BaseModel):
    """One row per accepted status transition. Append-only."""

    __tablename__ = "book_request_status_audits"

    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    book_request_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("book_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_status: Mapped[BookRequestStatus] = mapped_column(
        Enum(BookRequestStatus, name="book_request_status"),
        nullable=False,
    )
    current_status: Mapped[BookRequestStatus] = mapped_column(
        Enum(BookRequestStatus, name="book_request_status"),
        nullable=False,
    )


class Book(SoftDeleteMixin, BaseModel):
    __tablename__ = "books"

    name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    animations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    book_request_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("book_requests.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    courses: Mapped[list["BookCourse"]] = relationship(
        "BookCourse", back_populates="book", lazy="selectin"
    )
    authors: Mapped[list["BookAuthor"]] = relationship(
        "BookAuthor", back_populates="book", lazy="selectin"
    )
    categories: Mapped[list["BookCategory"]] = relationship(
        "BookCategory", back_populates="book", lazy="selectin"
    )

    @property
    def active_course_ids(self) -> list[str]:
        return [link.course_id for link in self.courses if link.deleted_at is None]

    @property
    def active_author_ids(self) -> list[str]:
        return [link.author_id for link in self.authors if link.deleted_at is None]

    @property
    def active_category_ids(self) -> list[str]:
        return [link.category_id for link in self.categories if link.deleted_at is None]

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, name={self.name})>"


class BookCourse(SoftDeleteMixin, BaseModel):
    __tablename__ = "book_courses"

    book_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    course_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    book: Mapped["Book"] = relationship("Book", back_populates="courses")


class BookAuthor(SoftDeleteMixin, BaseModel):
    __tablename__ = "book_authors"

    book_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("authors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    book: Mapped["Book"] = relationship("Book", back_populates="authors")


class BookCategory(SoftDeleteMixin, BaseModel):
    __tablename__ = "book_categories"

    book_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    book: Mapped["Book"] = relationship("Book", back_populates="categories")


class BookAudit(BaseModel):
    """
    Snapshot of a book at creation or update time.

    Author and category are stored by name so the record stays accurate
    even if the referenced rows are later renamed or deleted.
    """

    __tablename__ = "book_audits"

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    author: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    category: Mapped[str] = mapped_column(String(200), nullable=False)
    animations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    course_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    action: Mapped[BookAuditAction] = mapped_column(
        Enum(BookAuditAction, name="book_audit_action"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    book_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    book_request_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("book_requests.id", ondelete="SET NULL"),
        nullable=True,
    )
