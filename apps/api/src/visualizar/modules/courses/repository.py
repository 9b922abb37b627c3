"""
Course Repository

Read access to courses, authors and categories. All lookups ignore
soft-deleted rows.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Author, Category, Course


async def get_course(db: AsyncSession, course_id: str) -> Course | None:
    result = await db.execute(
        select(Course).where(Course.id == str(course_id), Course.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def get_courses_by_ids(db: AsyncSession, course_ids: list[str]) -> list[Course]:
    """Active courses among the given ids. Missing ids are simply absent."""
    if not course_ids:
        return []
    result = await db.execute(
        select(Course).where(
            Course.id.in_([str(course_id) for course_id in course_ids]),
            Course.deleted_at.is_(None),
        )
    )
    return list(result.scalars().all())


async def list_courses(db: AsyncSession, course_ids: list[str] | None = None) -> list[Course]:
    """
    List active courses ordered by name.

    Args:
        db: Database session
        course_ids: Restrict to these ids; None means no restriction

    Returns:
        List of courses
    """
    query = select(Course).where(Course.deleted_at.is_(None))
    if course_ids is not None:
        if not course_ids:
            return []
        query = query.where(Course.id.in_(course_ids))
    result = await db.execute(query.order_by(Course.name))
    return list(result.scalars().all())


async def get_author(db: AsyncSession, author_id: str) -> Author | None:
    result = await db.execute(
        select(Author).where(Author.id == str(author_id), Author.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def get_author_by_name(db: AsyncSession, name: str) -> Author | None:
    """First active author whose name matches exactly."""
    result = await db.execute(
        select(Author).where(Author.name == name, Author.deleted_at.is_(None)).limit(1)
    )
    return result.scalar_one_or_none()


async def get_category(db: AsyncSession, category_id: str) -> Category | None:
    result = await db.execute(
        select(Category).where(Category.id == str(category_id), Category.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()
