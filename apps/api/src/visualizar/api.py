from fastapi import APIRouter

from visualizar.modules.auth import router as auth_router
from visualizar.modules.books import router as books_router
from visualizar.modules.courses.router import router as courses_router
from visualizar.modules.users.router import router as users_router
from visualizar.modules.users.router import students_router, teachers_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(books_router, prefix="/books", tags=["Books"])

api_router.include_router(courses_router, prefix="/courses", tags=["Courses"])

api_router.include_router(users_router, prefix="/users", tags=["Users"])

api_router.include_router(teachers_router, prefix="/teachers", tags=["Teachers"])

api_router.include_router(students_router, prefix="/students", tags=["Students"])
