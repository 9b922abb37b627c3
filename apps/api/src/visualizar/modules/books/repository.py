"""
Books Repository

Database operations for books, book requests, their associations and
audit rows. Functions flush but never commit: the service layer groups
them into transactions with `visualizar.core.database.transaction`.

Design Principles:
- Every read ignores soft-deleted rows
- Status changes are compare-and-swap: the UPDATE only matches while the
  request is still in the status the caller validated against
- Audit tables are append-only
"""

from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    Book,
    BookAudit,
    BookAuditAction,
    BookAuthor,
    BookCategory,
    BookCourse,
    BookRequest,
    BookRequestCourse,
    BookRequestStatus,
    BookRequestStatusAudit,
)

# ============================================
# Book request state machine
# ============================================

# Valid status transitions - only an admin drives these
VALID_STATUS_TRANSITIONS: dict[BookRequestStatus, set[BookRequestStatus]] = {
    BookRequestStatus.PENDING: {
        BookRequestStatus.APPROVED,
        BookRequestStatus.DENIED,
    },
    BookRequestStatus.APPROVED: {
        BookRequestStatus.PUBLISHED,  # Reached by publishing a book from the request
    },
    # Terminal states - no transitions allowed
    BookRequestStatus.DENIED: set(),
    BookRequestStatus.PUBLISHED: set(),
}


def allowed_transitions(current_status: BookRequestStatus) -> list[BookRequestStatus]:
    """Allowed targets from `current_status`, in declaration order."""
    allowed = VALID_STATUS_TRANSITIONS.get(current_status, set())
    return [status for status in BookRequestStatus if status in allowed]


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(
        self,
        current_status: BookRequestStatus,
        new_status: BookRequestStatus,
    ):
        self.current_status = current_status
        self.new_status = new_status
        allowed = allowed_transitions(current_status)
        allowed_text = ", ".join(s.value for s in allowed) if allowed else "none (terminal state)"
        super().__init__(
            f"Invalid status transition from {current_status.value} to {new_status.value}. "
            f"Allowed transitions: {allowed_text}"
        )


def validate_transition(current_status: BookRequestStatus, new_status: BookRequestStatus) -> None:
    """
    Raises:
        InvalidStatusTransitionError: If `new_status` is not reachable
    """
    if new_status not in VALID_STATUS_TRANSITIONS.get(current_status, set()):
        raise InvalidStatusTransitionError(current_status, new_status)


# ============================================
# Book requests
# ============================================


async def get_request(db: AsyncSession, request_id: str) -> BookRequest | None:
    result = await db.execute(
        select(BookRequest).where(
            BookRequest.id == str(request_id),
            BookRequest.deleted_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


async def list_requests(db: AsyncSession, user_id: str | None = None) -> list[BookRequest]:
    """
    List active requests, newest first.

    Args:
        db: Database session
        user_id: Only requests made by this account; None for all
    """
    query = select(BookRequest).where(BookRequest.deleted_at.is_(None))
    if user_id is not None:
        query = query.where(BookRequest.user_id == str(user_id))
    result = await db.execute(query.order_by(BookRequest.created_at.desc()))
    return list(result.scalars().all())


async def create_request(
    db: AsyncSession,
    *,
    user_id: str,
    title: str,
    author_name: str,
    comments: str | None,
    animations: list[str],
    course_ids: list[str],
) -> BookRequest:
    """Create a PENDING request together with its course links."""
    book_request = BookRequest(
        user_id=user_id,
        title=title,
        author_name=author_name,
        comments=comments,
        animations=animations,
        status=BookRequestStatus.PENDING,
    )
    db.add(book_request)
    await db.flush()

    for course_id in course_ids:
        db.add(BookRequestCourse(book_request_id=book_request.id, course_id=course_id))
    await db.flush()

    return book_request


async def compare_and_set_status(
    db: AsyncSession,
    request_id: str,
    expected_status: BookRequestStatus,
    new_status: BookRequestStatus,
) -> bool:
    """
    Move a request to `new_status` only if it is still `expected_status`.

    Returns:
        True if exactly one row changed, False if the request was deleted
        or its status changed since it was read
    """
    result = await db.execute(
        update(BookRequest)
        .where(
            BookRequest.id == str(request_id),
            BookRequest.status == expected_status,
            BookRequest.deleted_at.is_(None),
        )
        .values(status=new_status)
        .returning(BookRequest.id)
    )
    return result.scalar_one_or_none() is not None


async def add_status_audit(
    db: AsyncSession,
    *,
    user_id: str,
    book_request_id: str,
    previous_status: BookRequestStatus,
    current_status: BookRequestStatus,
) -> BookRequestStatusAudit:
    audit = BookRequestStatusAudit(
        user_id=user_id,
        book_request_id=book_request_id,
        previous_status=previous_status,
        current_status=current_status,
    )
    db.add(audit)
    await db.flush()
    return audit


# ============================================
# Books
# ============================================


async def get_book(db: AsyncSession, book_id: str) -> Book | None:
    result = await db.execute(
        select(Book).where(Book.id == str(book_id), Book.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def list_books(db: AsyncSession, course_ids: list[str] | None = None) -> list[Book]:
    """
    List active books, newest first.

    Args:
        db: Database session
        course_ids: Only books with an active link to one of these
            courses; None means no restriction

    Returns:
        List of books
    """
    query = select(Book).where(Book.deleted_at.is_(None))
    if course_ids is not None:
        if not course_ids:
            return []
        linked = select(BookCourse.book_id).where(
            BookCourse.course_id.in_(course_ids),
            BookCourse.deleted_at.is_(None),
        )
        query = query.where(Book.id.in_(linked))
    result = await db.execute(query.order_by(Book.created_at.desc()))
    return list(result.scalars().all())


async def create_book(
    db: AsyncSession,
    *,
    name: str,
    description: str | None,
    image_url: str | None,
    animations: list[str],
    book_request_id: str | None,
) -> Book:
    book = Book(
        name=name,
        description=description,
        image_url=image_url,
        animations=animations,
        book_request_id=book_request_id,
    )
    db.add(book)
    await db.flush()
    return book


async def update_book(db: AsyncSession, book: Book, **fields) -> Book:
    """Apply scalar field changes to a loaded book."""
    for key, value in fields.items():
        if hasattr(book, key):
            setattr(book, key, value)
    await db.flush()
    return book


async def add_book_links(
    db: AsyncSession,
    book_id: str,
    *,
    course_id: str,
    author_id: str,
    category_id: str,
) -> None:
    """Create the course, author and category association rows."""
    db.add(BookCourse(book_id=book_id, course_id=course_id))
    db.add(BookAuthor(book_id=book_id, author_id=author_id))
    db.add(BookCategory(book_id=book_id, category_id=category_id))
    await db.flush()


async def soft_delete_book_links(db: AsyncSession, book_id: str) -> None:
    """Soft-delete every active course, author and category link of a book."""
    now = datetime.now(UTC)
    for link_model in (BookCourse, BookAuthor, BookCategory):
        await db.execute(
            update(link_model)
            .where(link_model.book_id == str(book_id), link_model.deleted_at.is_(None))
            .values(deleted_at=now)
        )


async def add_book_audit(
    db: AsyncSession,
    *,
    book: Book,
    action: BookAuditAction,
    author_name: str,
    category_name: str,
    course_ids: list[str],
    user_id: str,
    book_request_id: str | None = None,
) -> BookAudit:
    """Append a snapshot of `book` with denormalized author and category names."""
    audit = BookAudit(
        title=book.name,
        author=author_name,
        description=book.description,
        image_url=book.image_url,
        category=category_name,
        animations=list(book.animations or []),
        course_ids=list(course_ids),
        action=action,
        user_id=user_id,
        book_id=book.id,
        book_request_id=book_request_id,
    )
    db.add(audit)
    await db.flush()
    return audit


async def soft_delete_book(db: AsyncSession, book_id: str) -> bool:
    """
    Returns:
        True if an active book was marked deleted
    """
    result = await db.execute(
        update(Book)
        .where(Book.id == str(book_id), Book.deleted_at.is_(None))
        .values(deleted_at=datetime.now(UTC))
        .returning(Book.id)
    )
    return result.scalar_one_or_none() is not None
