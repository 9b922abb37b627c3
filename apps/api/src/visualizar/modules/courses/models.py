"""
Course Models

Reference entities linked from books and book requests.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from visualizar.modules.shared import BaseModel, SoftDeleteMixin


class Course(SoftDeleteMixin, BaseModel):
    __tablename__ = "courses"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, name={self.name})>"


class Author(SoftDeleteMixin, BaseModel):
    __tablename__ = "authors"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Author(id={self.id}, name={self.name})>"


class Category(SoftDeleteMixin, BaseModel):
    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name={self.name})>"
