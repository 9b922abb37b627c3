"""
User Service Layer

Administrator operations on accounts and their role profiles:
- Assigning teachers to courses and enrolling students
- Removing an assignment or enrollment (soft delete)
- Deleting an account, which also retires its Teacher/Student profile

Assignments and enrollments are what `visible_course_ids` reads, so these
operations decide which books and courses a teacher or student can see.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from visualizar.core.auth import AuthenticatedUser
from visualizar.core.database import transaction
from visualizar.core.errors import (
    BadRequestError,
    ForbiddenError,
    InternalServiceError,
    NotFoundError,
    ServiceError,
)
from visualizar.modules.courses import repository as courses_repository
from visualizar.modules.courses.models import Course
from visualizar.modules.users.models import Student, Teacher, UserRole
from visualizar.modules.users.repository import UserRepository
from visualizar.modules.users.schemas import CourseAssignmentResponse

logger = logging.getLogger(__name__)


async def _require_courses(db: AsyncSession, course_ids: list[str]) -> None:
    courses = await courses_repository.get_courses_by_ids(db, course_ids)
    found = {course.id for course in courses}
    missing = [course_id for course_id in course_ids if course_id not in found]
    if missing:
        raise BadRequestError(f"Courses not found: {', '.join(missing)}", "COURSES_NOT_FOUND")


async def _get_teacher(db: AsyncSession, teacher_id: str) -> Teacher:
    teacher = await UserRepository.get_teacher(db, teacher_id)
    if not teacher:
        raise NotFoundError("Teacher not found", "TEACHER_NOT_FOUND")
    return teacher


async def _get_student(db: AsyncSession, student_id: str) -> Student:
    student = await UserRepository.get_student(db, student_id)
    if not student:
        raise NotFoundError("Student not found", "STUDENT_NOT_FOUND")
    return student


async def assign_teacher_courses(
    db: AsyncSession,
    teacher_id: str,
    course_ids: list[str],
    user: AuthenticatedUser,
) -> CourseAssignmentResponse:
    """
    Assign a teacher to one or more courses.

    Raises:
        NotFoundError: Unknown or deleted teacher
        BadRequestError: Some courses do not exist
        InternalServiceError: The store failed
    """
    teacher = await _get_teacher(db, teacher_id)
    await _require_courses(db, course_ids)

    try:
        async with transaction(db):
            added = await UserRepository.assign_teacher_courses(db, teacher.id, course_ids)
    except SQLAlchemyError as e:
        logger.error(f"Failed to assign courses to teacher {teacher_id}: {e}", exc_info=True)
        raise InternalServiceError(f"Failed to assign courses: {e}") from e

    logger.info(f"User {user.id} assigned teacher {teacher_id} to {added}")
    return CourseAssignmentResponse(
        profile_id=teacher_id,
        course_ids=await UserRepository.get_teacher_course_ids(db, teacher_id),
        added=added,
    )


async def enroll_student_courses(
    db: AsyncSession,
    student_id: str,
    course_ids: list[str],
    user: AuthenticatedUser,
) -> CourseAssignmentResponse:
    """
    Enroll a student in one or more courses.

    Raises:
        NotFoundError: Unknown or deleted student
        BadRequestError: Some courses do not exist
        InternalServiceError: The store failed
    """
    student = await _get_student(db, student_id)
    await _require_courses(db, course_ids)

    try:
        async with transaction(db):
            added = await UserRepository.enroll_student_courses(db, student.id, course_ids)
    except SQLAlchemyError as e:
        logger.error(f"Failed to enroll student {student_id}: {e}", exc_info=True)
        raise InternalServiceError(f"Failed to enroll student: {e}") from e

    logger.info(f"User {user.id} enrolled student {student_id} in {added}")
    return CourseAssignmentResponse(
        profile_id=student_id,
        course_ids=await UserRepository.get_student_course_ids(db, student_id),
        added=added,
    )


async def list_student_courses(
    db: AsyncSession, student_id: str, user: AuthenticatedUser
) -> list[Course]:
    """
    Courses a student is actively enrolled in.

    Students may only list their own enrollments.

    Raises:
        NotFoundError: Unknown or deleted student
        ForbiddenError: A student asking about another student
    """
    student = await _get_student(db, student_id)
    if user.role == UserRole.STUDENT and student.user_id != user.id:
        raise ForbiddenError("Students can only view their own courses.", "NOT_OWN_PROFILE")

    course_ids = await UserRepository.get_student_course_ids(db, student.id)
    return await courses_repository.list_courses(db, course_ids)


async def unassign_teacher_course(
    db: AsyncSession, teacher_id: str, course_id: str, user: AuthenticatedUser
) -> None:
    await _get_teacher(db, teacher_id)
    try:
        async with transaction(db):
            removed = await UserRepository.unassign_teacher_course(db, teacher_id, course_id)
            if not removed:
                raise NotFoundError(
                    "Teacher is not assigned to this course", "ASSIGNMENT_NOT_FOUND"
                )
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise InternalServiceError(f"Failed to remove assignment: {e}") from e

    logger.info(f"User {user.id} removed teacher {teacher_id} from course {course_id}")


async def unenroll_student_course(
    db: AsyncSession, student_id: str, course_id: str, user: AuthenticatedUser
) -> None:
    """
    Remove a student from a course.

    Raises:
        NotFoundError: Unknown student, or not enrolled in the course
    """
    await _get_student(db, student_id)
    try:
        async with transaction(db):
            removed = await UserRepository.unenroll_student_course(db, student_id, course_id)
            if not removed:
                raise NotFoundError(
                    "Student is not enrolled in this course", "ENROLLMENT_NOT_FOUND"
                )
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise InternalServiceError(f"Failed to remove enrollment: {e}") from e

    logger.info(f"User {user.id} removed student {student_id} from course {course_id}")


async def delete_user(db: AsyncSession, user_id: str, user: AuthenticatedUser) -> None:
    """
    Soft-delete an account and its role profile.

    Raises:
        BadRequestError: An administrator deleting their own account
        NotFoundError: Unknown or already deleted account
    """
    if str(user_id) == user.id:
        raise BadRequestError("You cannot delete your own account", "SELF_DELETE")

    try:
        async with transaction(db):
            deleted = await UserRepository.soft_delete(db, user_id)
            if not deleted:
                raise NotFoundError("User not found", "USER_NOT_FOUND")
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        logger.error(f"Failed to delete user {user_id}: {e}", exc_info=True)
        raise InternalServiceError(f"Failed to delete user: {e}") from e

    logger.info(f"User {user.id} deleted account {user_id}")
