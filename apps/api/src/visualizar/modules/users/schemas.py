"""User, teacher and student management schemas."""

from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class CourseAssignmentRequest(BaseModel):
    course_ids: list[UUID] = Field(..., min_length=1)

    @field_validator("course_ids")
    @classmethod
    def deduplicate(cls, values: list[UUID]) -> list[UUID]:
        return list(dict.fromkeys(values))


class TeacherCourseAssignment(CourseAssignmentRequest):
    """Body of POST /teachers/assign-course."""

    teacher_id: UUID


class StudentCourseAssignment(CourseAssignmentRequest):
    """Body of POST /students/assign-course."""

    student_id: UUID


class CourseAssignmentResponse(BaseModel):
    """
    Result of an assignment.

    `course_ids` lists every active course of the profile after the call;
    `added` only the ones this call created.
    """

    profile_id: str
    course_ids: list[str]
    added: list[str]


class MessageResponse(BaseModel):
    id: str
    message: str
