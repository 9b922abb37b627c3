"""
Users module - accounts, role profiles and course assignments.
"""

from visualizar.modules.users.models import (
    Student,
    StudentCourse,
    Teacher,
    TeacherCourse,
    User,
    UserRole,
)
from visualizar.modules.users.repository import UserRepository

__all__ = [
    "User",
    "UserRole",
    "Teacher",
    "Student",
    "TeacherCourse",
    "StudentCourse",
    "UserRepository",
]
