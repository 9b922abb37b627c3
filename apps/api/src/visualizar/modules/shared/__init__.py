"""
Shared model building blocks.

BaseModel supplies the UUID primary key and audit timestamps used by every
table. SoftDeleteMixin adds the nullable `deleted_at` marker; a row is
active while it is NULL.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from visualizar.core.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class BaseModel(Base):
    """Abstract base with id and timestamps."""

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=_new_id,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SoftDeleteMixin:
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None


__all__ = ["BaseModel", "SoftDeleteMixin"]
