"""
User Repository

Database operations for accounts and their role profiles.
Methods flush but never commit; the calling service owns the transaction.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from visualizar.modules.users.models import (
    Student,
    StudentCourse,
    Teacher,
    TeacherCourse,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)

CourseLink = type[TeacherCourse] | type[StudentCourse]


async def _link_courses(
    db: AsyncSession,
    link_model: CourseLink,
    owner_field: str,
    owner_id: str,
    course_ids: list[str],
) -> list[str]:
    """Add active links for the courses not already linked. Returns those course ids."""
    owner = getattr(link_model, owner_field)
    result = await db.execute(
        select(link_model.course_id).where(owner == str(owner_id), link_model.deleted_at.is_(None))
    )
    current = set(result.scalars().all())

    added = [course_id for course_id in course_ids if course_id not in current]
    for course_id in added:
        db.add(link_model(**{owner_field: str(owner_id), "course_id": course_id}))
    await db.flush()
    return added


async def _unlink_course(
    db: AsyncSession,
    link_model: CourseLink,
    owner_field: str,
    owner_id: str,
    course_id: str,
) -> bool:
    owner = getattr(link_model, owner_field)
    result = await db.execute(
        update(link_model)
        .where(
            owner == str(owner_id),
            link_model.course_id == str(course_id),
            link_model.deleted_at.is_(None),
        )
        .values(deleted_at=datetime.now(UTC))
        .returning(link_model.id)
    )
    return result.scalars().first() is not None


class UserRepository:
    """Repository for account database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        dni: str,
        role: UserRole,
        name: str | None = None,
        supabase_user_id: str | None = None,
    ) -> User:
        """
        Create a new account record.

        Args:
            db: Database session
            email: Email address, already lowercased (unique)
            dni: National identifier (unique)
            role: Account role
            name: Display name (optional)
            supabase_user_id: External identity link (optional)

        Returns:
            Created User instance
        """
        user = User(
            email=email,
            dni=dni,
            role=role,
            name=name,
            supabase_user_id=supabase_user_id,
            failed_otp_attempts=0,
        )

        db.add(user)
        await db.flush()
        await db.refresh(user)

        logger.info(f"Created user: {user.id} - {user.email} ({user.role.value})")
        return user

    @staticmethod
    async def create_profile(db: AsyncSession, user: User) -> Teacher | Student | None:
        """Create the role profile for TEACHER and STUDENT accounts."""
        profile: Teacher | Student | None
        if user.role == UserRole.TEACHER:
            profile = Teacher(user_id=user.id)
        elif user.role == UserRole.STUDENT:
            profile = Student(user_id=user.id)
        else:
            return None

        db.add(profile)
        await db.flush()
        logger.info(f"Created {user.role.value.lower()} profile {profile.id} for user {user.id}")
        return profile

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: str) -> User | None:
        result = await db.execute(
            select(User).where(User.id == str(user_id), User.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """
        Get an active account by email address.

        Args:
            db: Database session
            email: Email address (compared lowercased)

        Returns:
            User instance or None if not found or soft-deleted
        """
        result = await db.execute(
            select(User).where(User.email == email.lower(), User.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_dni(db: AsyncSession, dni: str) -> User | None:
        result = await db.execute(select(User).where(User.dni == dni, User.deleted_at.is_(None)))
        return result.scalar_one_or_none()

    @staticmethod
    async def email_taken(db: AsyncSession, email: str) -> bool:
        """
        Whether any account, soft-deleted ones included, uses this email.

        The unique constraint covers every row, so a deleted account still
        blocks its email.
        """
        result = await db.execute(select(User.id).where(User.email == email.lower()).limit(1))
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def dni_taken(db: AsyncSession, dni: str) -> bool:
        """Whether any account, soft-deleted ones included, uses this DNI."""
        result = await db.execute(select(User.id).where(User.dni == dni).limit(1))
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_by_supabase_id(db: AsyncSession, supabase_user_id: str) -> User | None:
        result = await db.execute(
            select(User).where(
                User.supabase_user_id == supabase_user_id,
                User.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_admin_emails(db: AsyncSession) -> list[str]:
        """Emails of all active ADMIN accounts."""
        result = await db.execute(
            select(User.email).where(User.role == UserRole.ADMIN, User.deleted_at.is_(None))
        )
        return list(result.scalars().all())

    # ============================================
    # OTP lockout state
    # ============================================

    @staticmethod
    async def increment_failed_otp_attempts(db: AsyncSession, user_id: str) -> int:
        """
        Atomically add one to the failed-attempt counter.

        The increment happens in a single UPDATE so concurrent failures
        are never under-counted.

        Returns:
            The counter value after the increment
        """
        result = await db.execute(
            update(User)
            .where(User.id == str(user_id))
            .values(failed_otp_attempts=User.failed_otp_attempts + 1)
            .returning(User.failed_otp_attempts)
        )
        return result.scalar_one()

    @staticmethod
    async def set_otp_lock(db: AsyncSession, user_id: str, locked_until: datetime) -> None:
        await db.execute(
            update(User).where(User.id == str(user_id)).values(otp_locked_until=locked_until)
        )

    @staticmethod
    async def reset_otp_state(db: AsyncSession, user_id: str) -> None:
        """Clear the failed-attempt counter and any lock."""
        await db.execute(
            update(User)
            .where(User.id == str(user_id))
            .values(failed_otp_attempts=0, otp_locked_until=None)
        )

    @staticmethod
    async def link_external_identity(db: AsyncSession, user_id: str, supabase_user_id: str) -> None:
        await db.execute(
            update(User).where(User.id == str(user_id)).values(supabase_user_id=supabase_user_id)
        )

    # ============================================
    # Role profiles
    # ============================================

    @staticmethod
    async def get_teacher_by_user_id(db: AsyncSession, user_id: str) -> Teacher | None:
        result = await db.execute(
            select(Teacher).where(Teacher.user_id == str(user_id), Teacher.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_student_by_user_id(db: AsyncSession, user_id: str) -> Student | None:
        result = await db.execute(
            select(Student).where(Student.user_id == str(user_id), Student.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_teacher_course_ids(db: AsyncSession, teacher_id: str) -> list[str]:
        """Course ids from the teacher's active assignments."""
        result = await db.execute(
            select(TeacherCourse.course_id).where(
                TeacherCourse.teacher_id == teacher_id,
                TeacherCourse.deleted_at.is_(None),
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_student_course_ids(db: AsyncSession, student_id: str) -> list[str]:
        """Course ids from the student's active enrollments."""
        result = await db.execute(
            select(StudentCourse.course_id).where(
                StudentCourse.student_id == student_id,
                StudentCourse.deleted_at.is_(None),
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_teacher(db: AsyncSession, teacher_id: str) -> Teacher | None:
        result = await db.execute(
            select(Teacher).where(Teacher.id == str(teacher_id), Teacher.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_student(db: AsyncSession, student_id: str) -> Student | None:
        result = await db.execute(
            select(Student).where(Student.id == str(student_id), Student.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    # ============================================
    # Course assignments and enrollments
    # ============================================

    @staticmethod
    async def assign_teacher_courses(
        db: AsyncSession, teacher_id: str, course_ids: list[str]
    ) -> list[str]:
        """
        Assign a teacher to courses.

        Courses the teacher is already actively assigned to are skipped.

        Returns:
            The course ids that were newly assigned
        """
        added = await _link_courses(db, TeacherCourse, "teacher_id", teacher_id, course_ids)
        logger.info(f"Assigned teacher {teacher_id} to {len(added)} course(s)")
        return added

    @staticmethod
    async def unassign_teacher_course(db: AsyncSession, teacher_id: str, course_id: str) -> bool:
        """Soft-delete the active assignment. False when there is none."""
        return await _unlink_course(db, TeacherCourse, "teacher_id", teacher_id, course_id)

    @staticmethod
    async def enroll_student_courses(
        db: AsyncSession, student_id: str, course_ids: list[str]
    ) -> list[str]:
        """Enroll a student in courses, skipping active enrollments."""
        added = await _link_courses(db, StudentCourse, "student_id", student_id, course_ids)
        logger.info(f"Enrolled student {student_id} in {len(added)} course(s)")
        return added

    @staticmethod
    async def unenroll_student_course(db: AsyncSession, student_id: str, course_id: str) -> bool:
        return await _unlink_course(db, StudentCourse, "student_id", student_id, course_id)

    # ============================================
    # Deletion
    # ============================================

    @staticmethod
    async def soft_delete(db: AsyncSession, user_id: str) -> bool:
        """
        Soft-delete an account together with its role profile.

        Course assignments are kept as history; they stop counting once
        the profile is deleted.

        Returns:
            True if an active account was marked deleted
        """
        now = datetime.now(UTC)
        result = await db.execute(
            update(User)
            .where(User.id == str(user_id), User.deleted_at.is_(None))
            .values(deleted_at=now)
            .returning(User.id)
        )
        if result.scalar_one_or_none() is None:
            return False

        for profile_model in (Teacher, Student):
            await db.execute(
                update(profile_model)
                .where(profile_model.user_id == str(user_id), profile_model.deleted_at.is_(None))
                .values(deleted_at=now)
            )

        logger.info(f"Soft-deleted user {user_id} and its role profile")
        return True
