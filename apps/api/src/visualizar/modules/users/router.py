"""
User Management Routers

Endpoints:
- DELETE /users/{id} - Soft-delete an account and its role profile (admin)
- POST /teachers/assign-course - Assign a teacher to courses (admin)
- DELETE /teachers/{teacher_id}/courses/{course_id} - Remove an assignment (admin)
- POST /students/assign-course - Enroll a student in courses (admin)
- GET /students/{id}/courses - A student's courses (students: own only)
- DELETE /students/{student_id}/courses/{course_id} - Remove an enrollment (admin)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from visualizar.core.auth import AuthenticatedUser, authorize
from visualizar.core.database import get_db
from visualizar.core.errors import ServiceError, internal_error, to_http_exception
from visualizar.modules.courses.schemas import CourseResponse
from visualizar.modules.users import service
from visualizar.modules.users.schemas import (
    CourseAssignmentResponse,
    MessageResponse,
    StudentCourseAssignment,
    TeacherCourseAssignment,
)

logger = logging.getLogger(__name__)

router = APIRouter()
teachers_router = APIRouter()
students_router = APIRouter()


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("users.delete")),
) -> MessageResponse:
    try:
        await service.delete_user(db, str(user_id), user)
    except ServiceError as e:
        raise to_http_exception(e) from e
    return MessageResponse(id=str(user_id), message="User deleted successfully")


# ============================================
# Teachers
# ============================================


@teachers_router.post(
    "/assign-course",
    response_model=CourseAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_course_to_teacher(
    body: TeacherCourseAssignment,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("teachers.assign_course")),
) -> CourseAssignmentResponse:
    """
    Assign a teacher to courses. Existing assignments are left as they are.

    Raises:
        HTTPException 404: Teacher not found
        HTTPException 400: Some courses do not exist
    """
    try:
        return await service.assign_teacher_courses(
            db, str(body.teacher_id), [str(course_id) for course_id in body.course_ids], user
        )
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Error assigning courses to teacher: {e}")
        raise internal_error() from e


@teachers_router.delete("/{teacher_id}/courses/{course_id}", response_model=MessageResponse)
async def remove_teacher_from_course(
    teacher_id: UUID,
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("teachers.unassign_course")),
) -> MessageResponse:
    try:
        await service.unassign_teacher_course(db, str(teacher_id), str(course_id), user)
    except ServiceError as e:
        raise to_http_exception(e) from e
    return MessageResponse(id=str(teacher_id), message="Teacher removed from course")


# ============================================
# Students
# ============================================


@students_router.post(
    "/assign-course",
    response_model=CourseAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_course_to_student(
    body: StudentCourseAssignment,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("students.assign_course")),
) -> CourseAssignmentResponse:
    """Enroll a student in courses. Existing enrollments are left as they are."""
    try:
        return await service.enroll_student_courses(
            db, str(body.student_id), [str(course_id) for course_id in body.course_ids], user
        )
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Error enrolling student: {e}")
        raise internal_error() from e


@students_router.get("/{student_id}/courses", response_model=list[CourseResponse])
async def get_student_courses(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("students.courses")),
) -> list[CourseResponse]:
    try:
        courses = await service.list_student_courses(db, str(student_id), user)
    except ServiceError as e:
        raise to_http_exception(e) from e
    return [CourseResponse.model_validate(course) for course in courses]


@students_router.delete("/{student_id}/courses/{course_id}", response_model=MessageResponse)
async def remove_student_from_course(
    student_id: UUID,
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("students.unassign_course")),
) -> MessageResponse:
    try:
        await service.unenroll_student_course(db, str(student_id), str(course_id), user)
    except ServiceError as e:
        raise to_http_exception(e) from e
    return MessageResponse(id=str(student_id), message="Student removed from course")
