"""
Books Router

API endpoints for books and book requests.

Endpoints:
- GET /books - Books visible to the caller
- GET /books/course/{course_id} - Books of one course
- GET /books/{id} - Book detail
- POST /books - Publish a book from an approved request
- PUT /books/{id} - Update a book and replace its links
- DELETE /books/{id} - Soft-delete a book
- POST /books/request - Create a book request (teacher)
- GET /books/requests - Caller's own requests (teacher)
- GET /books/requests/all - Every request (admin)
- GET /books/requests/{id} - Request detail with matched author (admin)
- PATCH /books/request/{id}/status - Move a request through its lifecycle (admin)

Role permissions come from `visualizar.core.auth.ROLE_POLICY`.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from visualizar.core.auth import AuthenticatedUser, authorize
from visualizar.core.database import get_db
from visualizar.core.email import EmailClient, get_email_client
from visualizar.core.errors import ServiceError, internal_error, to_http_exception
from visualizar.modules.books import service
from visualizar.modules.books.models import Book, BookRequest
from visualizar.modules.books.schemas import (
    BookCreate,
    BookRequestCreate,
    BookRequestDetailResponse,
    BookRequestResponse,
    BookRequestStatusUpdate,
    BookResponse,
    BookUpdate,
    DeleteBookResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Helper Functions
# ============================================


def _book_to_response(book: Book) -> BookResponse:
    """Convert Book model to BookResponse schema."""
    return BookResponse(
        id=book.id,
        name=book.name,
        description=book.description,
        image_url=book.image_url,
        animations=book.animations or [],
        book_request_id=book.book_request_id,
        course_ids=book.active_course_ids,
        author_ids=book.active_author_ids,
        category_ids=book.active_category_ids,
        created_at=book.created_at,
        updated_at=book.updated_at,
    )


def _request_to_response(book_request: BookRequest) -> BookRequestResponse:
    """Convert BookRequest model to BookRequestResponse schema."""
    return BookRequestResponse(
        id=book_request.id,
        user_id=book_request.user_id,
        title=book_request.title,
        author_name=book_request.author_name,
        comments=book_request.comments,
        animations=book_request.animations,
        status=book_request.status,
        course_ids=book_request.active_course_ids,
        created_at=book_request.created_at,
    )


# ============================================
# Book requests
# ============================================


@router.post(
    "/request",
    response_model=BookRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Book Request",
)
async def create_book_request(
    body: BookRequestCreate,
    db: AsyncSession = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
    user: AuthenticatedUser = Depends(authorize("books.create_request")),
) -> BookRequestResponse:
    """
    Create a PENDING book request for one or more courses.

    Admins are notified and the teacher receives a confirmation email.
    Email failures never affect the response.
    """
    try:
        book_request = await service.create_request(db, body, user, email_client)
        return _request_to_response(book_request)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Error creating book request: {e}")
        raise internal_error() from e


@router.patch(
    "/request/{request_id}/status",
    response_model=BookRequestResponse,
    summary="Update Book Request Status",
)
async def update_book_request_status(
    request_id: UUID,
    body: BookRequestStatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("books.update_request_status")),
) -> BookRequestResponse:
    """
    Transition a request.

    Allowed: PENDING -> APPROVED | DENIED, APPROVED -> PUBLISHED.
    An invalid transition returns 400 listing the allowed targets.
    """
    try:
        book_request = await service.update_request_status(db, str(request_id), body.status, user)
        return _request_to_response(book_request)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Error updating book request {request_id}: {e}")
        raise internal_error() from e


@router.get("/requests", response_model=list[BookRequestResponse])
async def list_my_book_requests(
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("books.my_requests")),
) -> list[BookRequestResponse]:
    """The caller's own requests, newest first."""
    requests = await service.list_my_requests(db, user)
    return [_request_to_response(book_request) for book_request in requests]


@router.get("/requests/all", response_model=list[BookRequestResponse])
async def list_all_book_requests(
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("books.all_requests")),
) -> list[BookRequestResponse]:
    try:
        requests = await service.list_all_requests(db, user)
    except ServiceError as e:
        raise to_http_exception(e) from e
    return [_request_to_response(book_request) for book_request in requests]


@router.get("/requests/{request_id}", response_model=BookRequestDetailResponse)
async def get_book_request(
    request_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("books.get_request")),
) -> BookRequestDetailResponse:
    """Request detail. `author_id` is set when the author name matches an Author."""
    try:
        book_request, author_id = await service.get_request_detail(db, str(request_id))
    except ServiceError as e:
        raise to_http_exception(e) from e

    return BookRequestDetailResponse(
        **_request_to_response(book_request).model_dump(),
        author_id=author_id,
    )


# ============================================
# Books
# ============================================


@router.get("", response_model=list[BookResponse])
async def list_books(
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("books.list")),
) -> list[BookResponse]:
    """Books linked to the caller's courses (all books for admins)."""
    books = await service.get_books(db, user)
    return [_book_to_response(book) for book in books]


@router.get("/course/{course_id}", response_model=list[BookResponse])
async def list_books_by_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("books.by_course")),
) -> list[BookResponse]:
    books = await service.get_books_by_course(db, str(course_id), user)
    return [_book_to_response(book) for book in books]


@router.get("/{book_id}", response_model=BookResponse)
async def get_book(
    book_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("books.get")),
) -> BookResponse:
    try:
        book = await service.get_book(db, str(book_id), user)
    except ServiceError as e:
        raise to_http_exception(e) from e
    return _book_to_response(book)


@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Publish Book",
)
async def create_book(
    body: BookCreate,
    db: AsyncSession = Depends(get_db),
    email_client: EmailClient = Depends(get_email_client),
    user: AuthenticatedUser = Depends(authorize("books.create")),
) -> BookResponse:
    """
    Create a book from an APPROVED request.

    Atomic: the book, its links, its audit snapshot and the request's
    move to PUBLISHED all commit together.
    """
    try:
        book = await service.create_book(db, body, user, email_client)
        return _book_to_response(book)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Error creating book: {e}")
        raise internal_error() from e


@router.put("/{book_id}", response_model=BookResponse)
async def update_book(
    book_id: UUID,
    body: BookUpdate,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("books.update")),
) -> BookResponse:
    try:
        book = await service.update_book(db, str(book_id), body, user)
        return _book_to_response(book)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Error updating book {book_id}: {e}")
        raise internal_error() from e


@router.delete("/{book_id}", response_model=DeleteBookResponse)
async def delete_book(
    book_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("books.delete")),
) -> DeleteBookResponse:
    try:
        await service.delete_book(db, str(book_id), user)
    except ServiceError as e:
        raise to_http_exception(e) from e
    return DeleteBookResponse(id=str(book_id), message="Book deleted successfully")
