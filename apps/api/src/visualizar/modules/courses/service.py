"""
Course Service Layer

Role-scoped course visibility. The same visibility set drives both the
course listing and the book filters in the books module:

- ADMIN sees every active course (no restriction)
- TEACHER sees courses from the teacher profile's active assignments
- STUDENT sees courses from the student profile's active enrollments
- Any other role sees nothing

A missing profile or an empty assignment list yields an empty set, never
an error.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from visualizar.core.auth import AuthenticatedUser
from visualizar.modules.courses import repository
from visualizar.modules.courses.models import Course
from visualizar.modules.users.models import UserRole
from visualizar.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


async def visible_course_ids(db: AsyncSession, user: AuthenticatedUser) -> list[str] | None:
    """
    Course ids the caller may see.

    Returns:
        None when unrestricted (ADMIN), otherwise a possibly empty list
    """
    if user.role == UserRole.ADMIN:
        return None

    if user.role == UserRole.TEACHER:
        teacher = await UserRepository.get_teacher_by_user_id(db, user.id)
        if not teacher:
            logger.warning(f"TEACHER {user.id} has no teacher profile, nothing visible")
            return []
        return await UserRepository.get_teacher_course_ids(db, teacher.id)

    if user.role == UserRole.STUDENT:
        student = await UserRepository.get_student_by_user_id(db, user.id)
        if not student:
            logger.warning(f"STUDENT {user.id} has no student profile, nothing visible")
            return []
        return await UserRepository.get_student_course_ids(db, student.id)

    return []


def can_access_course(visible: list[str] | None, course_id: str) -> bool:
    return visible is None or str(course_id) in visible


async def get_courses(db: AsyncSession, user: AuthenticatedUser) -> list[Course]:
    visible = await visible_course_ids(db, user)
    return await repository.list_courses(db, visible)
