"""
Books Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from visualizar.modules.books.models import AnimationType, BookRequestStatus


def _unique(values: list) -> list:
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


# ============================================
# Book requests
# ============================================


class BookRequestCreate(BaseModel):
    """Request body for POST /books/request."""

    course_ids: list[UUID] = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=300)
    author_name: str = Field(..., min_length=1, max_length=200)
    comments: str | None = Field(None, max_length=2000)
    animations: list[AnimationType] = Field(..., min_length=1)

    @field_validator("title", "author_name")
    @classmethod
    def strip_required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("course_ids", "animations")
    @classmethod
    def deduplicate(cls, values: list) -> list:
        return _unique(values)


class BookRequestStatusUpdate(BaseModel):
    """Request body for PATCH /books/request/{id}/status."""

    status: BookRequestStatus


class BookRequestResponse(BaseModel):
    id: str
    user_id: str
    title: str
    author_name: str
    comments: str | None = None
    animations: list[AnimationType]
    status: BookRequestStatus
    course_ids: list[str]
    created_at: datetime


class BookRequestDetailResponse(BookRequestResponse):
    """Admin view of a request. `author_id` is set when an Author with
    exactly `author_name` exists."""

    author_id: str | None = None


# ============================================
# Books
# ============================================


class BookBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=300)
    description: str | None = Field(None, max_length=5000)
    image_url: str | None = Field(None, max_length=1000)
    animations: list[AnimationType] = Field(default_factory=list)

    # Checked by the service so a missing id is reported by name
    course_id: UUID | None = None
    author_id: UUID | None = None
    category_id: UUID | None = None

    @field_validator("animations")
    @classmethod
    def deduplicate(cls, values: list) -> list:
        return _unique(values)


class BookCreate(BookBase):
    """Request body for POST /books."""

    book_request_id: UUID | None = None


class BookUpdate(BookBase):
    """Request body for PUT /books/{id}."""


class BookResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    image_url: str | None = None
    animations: list[AnimationType]
    book_request_id: str | None = None
    course_ids: list[str]
    author_ids: list[str]
    category_ids: list[str]
    created_at: datetime
    updated_at: datetime


class DeleteBookResponse(BaseModel):
    id: str
    message: str
