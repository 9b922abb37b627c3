"""
Core module - Configuration, database, errors and external clients.
"""

from visualizar.core.config import get_settings, settings
from visualizar.core.database import Base, close_db, get_db, init_db, transaction
from visualizar.core.errors import (
    BadRequestError,
    ForbiddenError,
    InternalServiceError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
)
from visualizar.core.redis import close_redis, get_redis, init_redis

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    "transaction",
    # Errors
    "ServiceError",
    "UnauthorizedError",
    "ForbiddenError",
    "BadRequestError",
    "NotFoundError",
    "InternalServiceError",
    # Redis
    "get_redis",
    "init_redis",
    "close_redis",
]
