"""
Fixtures for user management tests.
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from visualizar.modules.courses.models import Course
from visualizar.modules.users.models import Student, Teacher


@pytest.fixture
def teacher_profile(teacher_user):
    teacher = MagicMock(spec=Teacher)
    teacher.id = str(uuid4())
    teacher.user_id = teacher_user.id
    return teacher


@pytest.fixture
def student_profile(student_user):
    student = MagicMock(spec=Student)
    student.id = str(uuid4())
    student.user_id = student_user.id
    return student


@pytest.fixture
def users_repo(teacher_profile, student_profile):
    """Patch UserRepository in the users service with awaitable methods."""
    with patch("visualizar.modules.users.service.UserRepository") as repo:
        repo.get_teacher = AsyncMock(return_value=teacher_profile)
        repo.get_student = AsyncMock(return_value=student_profile)
        repo.assign_teacher_courses = AsyncMock(return_value=[])
        repo.enroll_student_courses = AsyncMock(return_value=[])
        repo.get_teacher_course_ids = AsyncMock(return_value=[])
        repo.get_student_course_ids = AsyncMock(return_value=[])
        repo.unassign_teacher_course = AsyncMock(return_value=True)
        repo.unenroll_student_course = AsyncMock(return_value=True)
        repo.soft_delete = AsyncMock(return_value=True)
        yield repo


@pytest.fixture
def known_courses():
    """Patch course lookups so the given ids exist."""
    with patch("visualizar.modules.users.service.courses_repository") as repo:
        repo.existing = []

        async def get_courses_by_ids(db, course_ids):
            return [course for course in repo.existing if course.id in course_ids]

        def add(name: str) -> Course:
            course = MagicMock(spec=Course)
            course.id = str(uuid4())
            course.name = name
            repo.existing.append(course)
            return course

        repo.get_courses_by_ids = AsyncMock(side_effect=get_courses_by_ids)
        repo.list_courses = AsyncMock(return_value=[])
        repo.add = add
        yield repo
