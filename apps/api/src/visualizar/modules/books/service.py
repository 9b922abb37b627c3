"""
Books Service Layer

Business logic for the book publishing workflow.

This module implements:
1. Book Request Lifecycle:
   - A teacher creates a request (PENDING) for one or more courses
   - An admin approves or denies it
   - Publishing a book from an APPROVED request moves it to PUBLISHED
   Every accepted transition writes exactly one status audit row in the
   same transaction as the status change.

2. Book Materialization:
   - create_book writes the book, its course/author/category links, a
     CREATED audit snapshot and the request's PUBLISHED transition as one
     all-or-nothing transaction
   - update_book replaces all links and writes an UPDATED audit snapshot

3. Role-Scoped Reads:
   - Books are visible through the caller's assigned/enrolled courses
     (see `visualizar.modules.courses.service.visible_course_ids`)

Emails are fire-and-forget: they run after the response is decided,
open their own database session and only ever log failures.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from visualizar.core.auth import AuthenticatedUser
from visualizar.core.database import async_session_maker, transaction
from visualizar.core.email import EmailClient
from visualizar.core.errors import (
    BadRequestError,
    InternalServiceError,
    NotFoundError,
    ServiceError,
)
from visualizar.modules.books import emails, repository
from visualizar.modules.books.models import (
    Book,
    BookAuditAction,
    BookRequest,
    BookRequestStatus,
)
from visualizar.modules.books.repository import InvalidStatusTransitionError
from visualizar.modules.books.schemas import BookCreate, BookRequestCreate, BookUpdate
from visualizar.modules.courses import repository as courses_repository
from visualizar.modules.courses.models import Author, Category, Course
from visualizar.modules.courses.service import can_access_course, visible_course_ids
from visualizar.modules.users.models import UserRole
from visualizar.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

# Strong references to running email tasks until they finish
_background_tasks: set[asyncio.Task] = set()


class StatusConflictError(BadRequestError):
    """Raised when a request's status changed between read and update."""

    def __init__(self, request_id: str):
        super().__init__(
            message=f"Book request {request_id} status changed concurrently. Reload and try again.",
            error_code="STATUS_CONFLICT",
        )


def _fire_and_forget(coro: Coroutine[Any, Any, None]) -> None:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


# ============================================
# Notifications
# ============================================


async def _notify_request_created(
    client: EmailClient,
    *,
    teacher_name: str,
    teacher_email: str,
    title: str,
    author_name: str,
    course_names: list[str],
    animations: list[str],
    comments: str | None,
) -> None:
    """Email all admins and confirm to the teacher. Never raises."""
    details = {
        "title": title,
        "author_name": author_name,
        "course_names": course_names,
        "animations": animations,
        "comments": comments,
    }

    try:
        async with async_session_maker() as session:
            admin_emails = await UserRepository.get_admin_emails(session)

        if not admin_emails:
            logger.warning(f"No admin accounts to notify about book request '{title}'")
        elif not await emails.send_request_notification_to_admins(
            client,
            admin_emails,
            teacher_name=teacher_name,
            teacher_email=teacher_email,
            **details,
        ):
            logger.error(f"Failed to notify admins about book request '{title}'")
    except Exception as e:
        logger.error(f"Exception notifying admins about book request '{title}': {e}", exc_info=True)

    try:
        if not await emails.send_request_confirmation_to_teacher(
            client,
            teacher_email,
            teacher_name=teacher_name,
            **details,
        ):
            logger.error(f"Failed to send book request confirmation to {teacher_email}")
    except Exception as e:
        logger.error(f"Exception sending book request confirmation: {e}", exc_info=True)


async def _notify_book_published(
    client: EmailClient,
    *,
    requester_id: str,
    title: str,
    book_name: str,
) -> None:
    """Tell the requesting teacher their book is live. Never raises."""
    try:
        async with async_session_maker() as session:
            requester = await UserRepository.get_by_id(session, requester_id)

        if not requester:
            logger.warning(f"Requester {requester_id} not found, skipping published email")
            return

        sent = await emails.send_book_published_to_teacher(
            client,
            requester.email,
            teacher_name=requester.name or requester.email,
            title=title,
            book_name=book_name,
        )
        if not sent:
            logger.error(f"Failed to send published email to {requester.email}")
    except Exception as e:
        logger.error(f"Exception sending published email: {e}", exc_info=True)


# ============================================
# Book request lifecycle
# ============================================


async def _apply_transition(
    db: AsyncSession,
    request_id: str,
    previous_status: BookRequestStatus,
    new_status: BookRequestStatus,
    user_id: str,
) -> None:
    """
    Compare-and-swap the status and append its audit row.

    Must run inside a transaction.

    Raises:
        StatusConflictError: If the request is no longer in `previous_status`
    """
    swapped = await repository.compare_and_set_status(db, request_id, previous_status, new_status)
    if not swapped:
        logger.warning(
            f"Book request {request_id} is no longer {previous_status.value}, "
            f"refusing transition to {new_status.value}"
        )
        raise StatusConflictError(request_id)

    await repository.add_status_audit(
        db,
        user_id=user_id,
        book_request_id=request_id,
        previous_status=previous_status,
        current_status=new_status,
    )


async def create_request(
    db: AsyncSession,
    data: BookRequestCreate,
    user: AuthenticatedUser,
    email_client: EmailClient,
) -> BookRequest:
    """
    Create a book request for the calling teacher.

    Args:
        db: Database session
        data: Validated request body
        user: The caller (must be a TEACHER)
        email_client: Used for the fire-and-forget notifications

    Returns:
        The created BookRequest with its course links

    Raises:
        BadRequestError: Caller is not a teacher, or some courses are missing
        InternalServiceError: The store failed to create the request
    """
    if user.role != UserRole.TEACHER:
        raise BadRequestError("Only teachers can create book requests", "TEACHER_REQUIRED")

    course_ids = [str(course_id) for course_id in data.course_ids]
    courses = await courses_repository.get_courses_by_ids(db, course_ids)
    found = {course.id for course in courses}
    missing = [course_id for course_id in course_ids if course_id not in found]
    if missing:
        raise BadRequestError(f"Courses not found: {', '.join(missing)}", "COURSES_NOT_FOUND")

    animations = [animation.value for animation in data.animations]

    try:
        async with transaction(db):
            book_request = await repository.create_request(
                db,
                user_id=user.id,
                title=data.title,
                author_name=data.author_name,
                comments=data.comments,
                animations=animations,
                course_ids=course_ids,
            )
    except SQLAlchemyError as e:
        logger.error(f"Failed to create book request for {user.id}: {e}", exc_info=True)
        raise InternalServiceError(f"Failed to create book request: {e}") from e

    await db.refresh(book_request)
    logger.info(f"Teacher {user.id} created book request {book_request.id}")

    _fire_and_forget(
        _notify_request_created(
            email_client,
            teacher_name=user.name or user.email,
            teacher_email=user.email,
            title=data.title,
            author_name=data.author_name,
            course_names=[course.name for course in courses],
            animations=animations,
            comments=data.comments,
        )
    )

    return book_request


async def update_request_status(
    db: AsyncSession,
    request_id: str,
    new_status: BookRequestStatus,
    user: AuthenticatedUser,
) -> BookRequest:
    """
    Move a book request to `new_status`.

    Raises:
        BadRequestError: Caller is not an admin, or the transition is invalid
        NotFoundError: Request does not exist or is deleted
        StatusConflictError: Another transition won the race
        InternalServiceError: The store failed mid-transaction
    """
    if user.role != UserRole.ADMIN:
        raise BadRequestError(
            "Only administrators can update book request status", "ADMIN_REQUIRED"
        )

    book_request = await repository.get_request(db, request_id)
    if not book_request:
        raise NotFoundError(f"Book request {request_id} not found", "BOOK_REQUEST_NOT_FOUND")

    previous_status = book_request.status
    try:
        repository.validate_transition(previous_status, new_status)
    except InvalidStatusTransitionError as e:
        logger.info(f"Rejected transition for book request {request_id}: {e}")
        raise BadRequestError(str(e), "INVALID_STATUS_TRANSITION") from e

    try:
        async with transaction(db):
            await _apply_transition(db, book_request.id, previous_status, new_status, user.id)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Failed to update book request {request_id}: {e}", exc_info=True)
        raise InternalServiceError(f"Failed to update book request status: {e}") from e

    await db.refresh(book_request)
    logger.info(
        f"Admin {user.id} moved book request {request_id} "
        f"{previous_status.value} -> {new_status.value}"
    )
    return book_request


async def list_my_requests(db: AsyncSession, user: AuthenticatedUser) -> list[BookRequest]:
    return await repository.list_requests(db, user_id=user.id)


async def list_all_requests(db: AsyncSession, user: AuthenticatedUser) -> list[BookRequest]:
    if user.role != UserRole.ADMIN:
        raise BadRequestError("Only administrators can view all book requests", "ADMIN_REQUIRED")
    return await repository.list_requests(db)


async def get_request_detail(db: AsyncSession, request_id: str) -> tuple[BookRequest, str | None]:
    """
    Load a request and match its free-text author to an Author record.

    Returns:
        (request, author_id) where author_id is None when no Author has
        exactly the requested name
    """
    book_request = await repository.get_request(db, request_id)
    if not book_request:
        raise NotFoundError(f"Book request {request_id} not found", "BOOK_REQUEST_NOT_FOUND")

    author = await courses_repository.get_author_by_name(db, book_request.author_name)
    return book_request, author.id if author else None


# ============================================
# Books
# ============================================


def _require_references(data: BookCreate | BookUpdate) -> None:
    required = [
        ("course_id", "Course ID"),
        ("author_id", "Author ID"),
        ("category_id", "Category ID"),
    ]
    if isinstance(data, BookCreate):
        required.append(("book_request_id", "Book Request ID"))

    for field, label in required:
        if getattr(data, field) is None:
            raise BadRequestError(f"{label} is required", "MISSING_REFERENCE")


async def _load_references(
    db: AsyncSession, data: BookCreate | BookUpdate
) -> tuple[Course, Author, Category]:
    course = await courses_repository.get_course(db, str(data.course_id))
    if not course:
        raise NotFoundError("Course not found", "COURSE_NOT_FOUND")

    author = await courses_repository.get_author(db, str(data.author_id))
    if not author:
        raise NotFoundError("Author not found", "AUTHOR_NOT_FOUND")

    category = await courses_repository.get_category(db, str(data.category_id))
    if not category:
        raise NotFoundError("Category not found", "CATEGORY_NOT_FOUND")

    return course, author, category


async def create_book(
    db: AsyncSession,
    data: BookCreate,
    user: AuthenticatedUser,
    email_client: EmailClient,
) -> Book:
    """
    Publish a book from an approved request.

    The book, its three links, the CREATED audit, the request's move to
    PUBLISHED and that move's audit row are committed together or not at
    all.

    Raises:
        BadRequestError: A reference id is missing, or the request is not
            APPROVED
        NotFoundError: The request, course, author or category is missing
        StatusConflictError: The request changed status concurrently
        InternalServiceError: The store failed mid-transaction
    """
    _require_references(data)

    book_request = await repository.get_request(db, str(data.book_request_id))
    if not book_request:
        raise NotFoundError("Book Request not found", "BOOK_REQUEST_NOT_FOUND")

    course, author, category = await _load_references(db, data)

    # A rollback expires loaded rows, so keep what the error path needs
    request_id = book_request.id
    previous_status = book_request.status
    try:
        repository.validate_transition(previous_status, BookRequestStatus.PUBLISHED)
    except InvalidStatusTransitionError as e:
        raise BadRequestError(str(e), "INVALID_STATUS_TRANSITION") from e

    try:
        async with transaction(db):
            book = await repository.create_book(
                db,
                name=data.name,
                description=data.description,
                image_url=data.image_url,
                animations=[animation.value for animation in data.animations],
                book_request_id=request_id,
            )
            await repository.add_book_links(
                db,
                book.id,
                course_id=course.id,
                author_id=author.id,
                category_id=category.id,
            )
            await repository.add_book_audit(
                db,
                book=book,
                action=BookAuditAction.CREATED,
                author_name=author.name,
                category_name=category.name,
                course_ids=[course.id],
                user_id=user.id,
                book_request_id=request_id,
            )
            await _apply_transition(
                db, request_id, previous_status, BookRequestStatus.PUBLISHED, user.id
            )
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Failed to create book from request {request_id}: {e}", exc_info=True)
        raise InternalServiceError(f"Failed to create book: {e}") from e

    await db.refresh(book)
    logger.info(f"User {user.id} published book {book.id} from request {request_id}")

    _fire_and_forget(
        _notify_book_published(
            email_client,
            requester_id=book_request.user_id,
            title=book_request.title,
            book_name=book.name,
        )
    )

    return book


async def update_book(
    db: AsyncSession,
    book_id: str,
    data: BookUpdate,
    user: AuthenticatedUser,
) -> Book:
    """
    Update a book and replace its course, author and category links.

    Existing links are soft-deleted and new ones created in the same
    transaction as the UPDATED audit row.

    Raises:
        BadRequestError: A reference id is missing
        NotFoundError: The book, course, author or category is missing
        InternalServiceError: The store failed mid-transaction
    """
    _require_references(data)

    book = await repository.get_book(db, book_id)
    if not book:
        raise NotFoundError("Book not found", "BOOK_NOT_FOUND")

    course, author, category = await _load_references(db, data)

    try:
        async with transaction(db):
            await repository.update_book(
                db,
                book,
                name=data.name,
                description=data.description,
                image_url=data.image_url,
                animations=[animation.value for animation in data.animations],
            )
            await repository.soft_delete_book_links(db, book.id)
            await repository.add_book_links(
                db,
                book.id,
                course_id=course.id,
                author_id=author.id,
                category_id=category.id,
            )
            await repository.add_book_audit(
                db,
                book=book,
                action=BookAuditAction.UPDATED,
                author_name=author.name,
                category_name=category.name,
                course_ids=[course.id],
                user_id=user.id,
            )
    except SQLAlchemyError as e:
        logger.error(f"Failed to update book {book_id}: {e}", exc_info=True)
        raise InternalServiceError(f"Failed to update book: {e}") from e

    await db.refresh(book)
    logger.info(f"User {user.id} updated book {book_id}")
    return book


async def delete_book(db: AsyncSession, book_id: str, user: AuthenticatedUser) -> None:
    """Soft-delete a book. Its links and audits are kept."""
    try:
        async with transaction(db):
            deleted = await repository.soft_delete_book(db, book_id)
            if not deleted:
                raise NotFoundError("Book not found", "BOOK_NOT_FOUND")
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise InternalServiceError(f"Failed to delete book: {e}") from e

    logger.info(f"User {user.id} deleted book {book_id}")


async def get_books(db: AsyncSession, user: AuthenticatedUser) -> list[Book]:
    """Books linked to any course visible to the caller."""
    visible = await visible_course_ids(db, user)
    return await repository.list_books(db, visible)


async def get_books_by_course(
    db: AsyncSession, course_id: str, user: AuthenticatedUser
) -> list[Book]:
    """
    Books linked to one course.

    Empty when a non-admin caller is not assigned to or enrolled in the
    course, even if the course exists.
    """
    visible = await visible_course_ids(db, user)
    if not can_access_course(visible, course_id):
        logger.info(f"User {user.id} has no access to course {course_id}")
        return []
    return await repository.list_books(db, [str(course_id)])


async def get_book(db: AsyncSession, book_id: str, user: AuthenticatedUser) -> Book:
    """
    Raises:
        NotFoundError: Missing, deleted, or not linked to a visible course
    """
    book = await repository.get_book(db, book_id)
    if not book:
        raise NotFoundError("Book not found", "BOOK_NOT_FOUND")

    visible = await visible_course_ids(db, user)
    if visible is not None and not set(book.active_course_ids) & set(visible):
        raise NotFoundError("Book not found", "BOOK_NOT_FOUND")

    return book
