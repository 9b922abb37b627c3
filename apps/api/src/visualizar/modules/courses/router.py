"""Course router."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from visualizar.core.auth import AuthenticatedUser, authorize
from visualizar.core.database import get_db
from visualizar.core.errors import internal_error
from visualizar.modules.courses import service
from visualizar.modules.courses.schemas import CourseResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[CourseResponse])
async def list_courses(
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(authorize("courses.list")),
) -> list[CourseResponse]:
    """List the courses visible to the caller."""
    try:
        courses = await service.get_courses(db, user)
    except Exception as e:
        logger.exception(f"Error listing courses: {e}")
        raise internal_error() from e
    return [CourseResponse.model_validate(course) for course in courses]
