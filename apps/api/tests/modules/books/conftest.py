"""
Fixtures for books tests.
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from visualizar.modules.books import repository as real_repository
from visualizar.modules.books.models import Book, BookRequest, BookRequestStatus
from visualizar.modules.courses.models import Author, Category, Course


@pytest.fixture
def books_repo():
    """Patch the books repository used by the service.

    The state machine helpers stay real so transition rules are exercised.
    """
    with patch("visualizar.modules.books.service.repository") as repo:
        repo.validate_transition = real_repository.validate_transition
        repo.get_request = AsyncMock(return_value=None)
        repo.list_requests = AsyncMock(return_value=[])
        repo.create_request = AsyncMock()
        repo.compare_and_set_status = AsyncMock(return_value=True)
        repo.add_status_audit = AsyncMock()
        repo.get_book = AsyncMock(return_value=None)
        repo.list_books = AsyncMock(return_value=[])
        repo.create_book = AsyncMock()
        repo.update_book = AsyncMock()
        repo.add_book_links = AsyncMock()
        repo.soft_delete_book_links = AsyncMock()
        repo.add_book_audit = AsyncMock()
        repo.soft_delete_book = AsyncMock(return_value=True)
        yield repo


@pytest.fixture
def courses_repo():
    """Patch the course/author/category lookups used by the books service."""
    course = MagicMock(spec=Course)
    course.id = str(uuid4())
    course.name = "Lengua 3A"
    author = MagicMock(spec=Author)
    author.id = str(uuid4())
    author.name = "Gabriel García Márquez"
    category = MagicMock(spec=Category)
    category.id = str(uuid4())
    category.name = "Novela"

    with patch("visualizar.modules.books.service.courses_repository") as repo:
        repo.get_course = AsyncMock(return_value=course)
        repo.get_author = AsyncMock(return_value=author)
        repo.get_category = AsyncMock(return_value=category)
        repo.get_courses_by_ids = AsyncMock(return_value=[course])
        repo.get_author_by_name = AsyncMock(return_value=None)
        repo.course = course
        repo.author = author
        repo.category = category
        yield repo


@pytest.fixture
def no_background_emails():
    """Keep notification coroutines from being scheduled."""
    with (
        patch("visualizar.modules.books.service._fire_and_forget") as fire,
        patch("visualizar.modules.books.service._notify_request_created", MagicMock()),
        patch("visualizar.modules.books.service._notify_book_published", MagicMock()),
    ):
        yield fire


@pytest.fixture
def make_request():
    """Factory for book requests in a given status."""

    def _make(status: BookRequestStatus, user_id: str = "teacher-user-1"):
        book_request = MagicMock(spec=BookRequest)
        book_request.id = str(uuid4())
        book_request.user_id = user_id
        book_request.title = "Cien años de soledad"
        book_request.author_name = "Gabriel García Márquez"
        book_request.status = status
        return book_request

    return _make


@pytest.fixture
def make_book():
    """Factory for books linked to the given courses."""

    def _make(name: str = "Cien años de soledad", course_ids=None):
        book = MagicMock(spec=Book)
        book.id = str(uuid4())
        book.name = name
        book.active_course_ids = course_ids or []
        return book

    return _make
