"""
Tests for the book request state machine.
"""

import pytest

from visualizar.modules.books.models import BookRequestStatus
from visualizar.modules.books.repository import (
    InvalidStatusTransitionError,
    allowed_transitions,
    validate_transition,
)


@pytest.mark.parametrize(
    ("current", "new"),
    [
        (BookRequestStatus.PENDING, BookRequestStatus.APPROVED),
        (BookRequestStatus.PENDING, BookRequestStatus.DENIED),
        (BookRequestStatus.APPROVED, BookRequestStatus.PUBLISHED),
    ],
)
def test_valid_transitions(current, new):
    validate_transition(current, new)


@pytest.mark.parametrize(
    ("current", "new"),
    [
        (BookRequestStatus.PENDING, BookRequestStatus.PUBLISHED),
        (BookRequestStatus.PENDING, BookRequestStatus.PENDING),
        (BookRequestStatus.APPROVED, BookRequestStatus.DENIED),
        (BookRequestStatus.APPROVED, BookRequestStatus.PENDING),
        (BookRequestStatus.DENIED, BookRequestStatus.APPROVED),
        (BookRequestStatus.PUBLISHED, BookRequestStatus.PENDING),
    ],
)
def test_invalid_transitions(current, new):
    with pytest.raises(InvalidStatusTransitionError):
        validate_transition(current, new)


def test_allowed_transitions_in_declaration_order():
    assert allowed_transitions(BookRequestStatus.PENDING) == [
        BookRequestStatus.APPROVED,
        BookRequestStatus.DENIED,
    ]
    assert allowed_transitions(BookRequestStatus.PUBLISHED) == []


def test_error_message_lists_allowed_targets():
    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        validate_transition(BookRequestStatus.PENDING, BookRequestStatus.PUBLISHED)

    assert str(exc_info.value) == (
        "Invalid status transition from PENDING to PUBLISHED. "
        "Allowed transitions: APPROVED, DENIED"
    )


def test_error_message_for_terminal_state():
    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        validate_transition(BookRequestStatus.DENIED, BookRequestStatus.APPROVED)

    assert str(exc_info.value).endswith("Allowed transitions: none (terminal state)")
