"""
User Models

Accounts, their role profiles (Teacher, Student) and the course
assignment/enrollment rows that drive role-scoped visibility.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import ENUM, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from visualizar.modules.courses.models import Course
from visualizar.modules.shared import BaseModel, SoftDeleteMixin


class UserRole(str, Enum):
    """User roles in the system."""

    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    INSTITUTION = "INSTITUTION"


class User(SoftDeleteMixin, BaseModel):
    """
    Account model for authentication and authorization.

    Authentication is delegated to the identity provider; `supabase_user_id`
    links the local account to the external identity and must be set before
    the account can log in. `failed_otp_attempts` and `otp_locked_until`
    hold the per-account OTP lockout state.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )
    dni: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
    )
    role: Mapped[UserRole] = mapped_column(
        ENUM(UserRole, name="user_role", create_type=True),
        nullable=False,
        default=UserRole.STUDENT,
    )

    # External identity link
    supabase_user_id: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=True,
    )

    # OTP lockout
    failed_otp_attempts: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0",
        nullable=False,
    )
    otp_locked_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    teacher: Mapped["Teacher | None"] = relationship(
        "Teacher",
        back_populates="user",
        uselist=False,
        lazy="selectin",
    )
    student: Mapped["Student | None"] = relationship(
        "Student",
        back_populates="user",
        uselist=False,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"


class Teacher(SoftDeleteMixin, BaseModel):
    """Teacher profile, one per TEACHER account."""

    __tablename__ = "teachers"

    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    user: Mapped["User"] = relationship("User", back_populates="teacher")
    courses: Mapped[list["TeacherCourse"]] = relationship(
        "TeacherCourse",
        back_populates="teacher",
        lazy="selectin",
    )


class Student(SoftDeleteMixin, BaseModel):
    """Student profile, one per STUDENT account."""

    __tablename__ = "students"

    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    user: Mapped["User"] = relationship("User", back_populates="student")
    courses: Mapped[list["StudentCourse"]] = relationship(
        "StudentCourse",
        back_populates="student",
        lazy="selectin",
    )


class TeacherCourse(SoftDeleteMixin, BaseModel):
    """Assignment of a teacher to a course."""

    __tablename__ = "teacher_courses"

    teacher_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("teachers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    course_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    teacher: Mapped["Teacher"] = relationship("Teacher", back_populates="courses")
    course: Mapped["Course"] = relationship("Course")


class StudentCourse(SoftDeleteMixin, BaseModel):
    """Enrollment of a student in a course."""

    __tablename__ = "student_courses"

    student_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    course_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    student: Mapped["Student"] = relationship("Student", back_populates="courses")
    course: Mapped["Course"] = relationship("Course")
