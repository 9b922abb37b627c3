"""
Books module - book requests, their approval lifecycle and published books.
"""

from visualizar.modules.books.router import router

__all__ = ["router"]
