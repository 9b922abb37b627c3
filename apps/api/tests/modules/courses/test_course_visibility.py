"""
Tests for role-scoped course visibility.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from visualizar.core.auth import AuthenticatedUser
from visualizar.modules.courses.service import (
    can_access_course,
    get_courses,
    visible_course_ids,
)
from visualizar.modules.users.models import Student, Teacher, UserRole


@pytest.fixture
def user_repo():
    with patch("visualizar.modules.courses.service.UserRepository") as repo:
        repo.get_teacher_by_user_id = AsyncMock(return_value=None)
        repo.get_student_by_user_id = AsyncMock(return_value=None)
        repo.get_teacher_course_ids = AsyncMock(return_value=[])
        repo.get_student_course_ids = AsyncMock(return_value=[])
        yield repo


@pytest.mark.asyncio
async def test_admin_is_unrestricted(mock_db, admin_user, user_repo):
    assert await visible_course_ids(mock_db, admin_user) is None
    user_repo.get_teacher_by_user_id.assert_not_awaited()


@pytest.mark.asyncio
async def test_teacher_sees_assigned_courses(mock_db, teacher_user, user_repo):
    teacher = MagicMock(spec=Teacher)
    teacher.id = "teacher-1"
    user_repo.get_teacher_by_user_id.return_value = teacher
    user_repo.get_teacher_course_ids.return_value = ["course-a", "course-b"]

    visible = await visible_course_ids(mock_db, teacher_user)

    assert visible == ["course-a", "course-b"]
    user_repo.get_teacher_course_ids.assert_awaited_once_with(mock_db, "teacher-1")


@pytest.mark.asyncio
async def test_student_sees_enrolled_courses(mock_db, student_user, user_repo):
    student = MagicMock(spec=Student)
    student.id = "student-1"
    user_repo.get_student_by_user_id.return_value = student
    user_repo.get_student_course_ids.return_value = ["course-c"]

    assert await visible_course_ids(mock_db, student_user) == ["course-c"]


@pytest.mark.asyncio
async def test_teacher_without_profile_sees_nothing(mock_db, teacher_user, user_repo):
    assert await visible_course_ids(mock_db, teacher_user) == []
    user_repo.get_teacher_course_ids.assert_not_awaited()


@pytest.mark.asyncio
async def test_institution_sees_nothing(mock_db, user_repo):
    institution = AuthenticatedUser(
        id="00000000-0000-0000-0000-000000000009",
        email="colegio@visualizar.app",
        role=UserRole.INSTITUTION,
    )

    assert await visible_course_ids(mock_db, institution) == []


@pytest.mark.asyncio
async def test_get_courses_passes_visibility_to_repository(mock_db, teacher_user):
    with (
        patch(
            "visualizar.modules.courses.service.visible_course_ids",
            AsyncMock(return_value=["course-a"]),
        ),
        patch("visualizar.modules.courses.service.repository") as repo,
    ):
        repo.list_courses = AsyncMock(return_value=[])
        await get_courses(mock_db, teacher_user)

    repo.list_courses.assert_awaited_once_with(mock_db, ["course-a"])


def test_can_access_course():
    assert can_access_course(None, "any-course") is True
    assert can_access_course(["course-a"], "course-a") is True
    assert can_access_course(["course-a"], "course-b") is False
    assert can_access_course([], "course-a") is False
