"""
Authentication module - OTP login and account provisioning.
"""

from visualizar.modules.auth.router import router

__all__ = ["router"]
