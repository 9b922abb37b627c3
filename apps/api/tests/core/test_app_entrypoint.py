"""
Tests for the application entry point.
"""

from unittest.mock import patch

from visualizar import main
from visualizar.core.config import settings


def test_run_serves_app_with_uvicorn():
    with patch("visualizar.main.uvicorn.run") as uvicorn_run:
        main.run()

    uvicorn_run.assert_called_once_with(
        "visualizar.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )


def test_api_routes_are_mounted():
    paths = {route.path for route in main.app.routes}

    assert "/api/v1/auth/verify-otp" in paths
    assert "/api/v1/books/request/{request_id}/status" in paths
    assert "/api/v1/teachers/assign-course" in paths
    assert "/api/v1/students/assign-course" in paths
    assert "/api/v1/students/{student_id}/courses" in paths
    assert "/api/v1/students/{student_id}/courses/{course_id}" in paths
    assert "/api/v1/users/{user_id}" in paths
