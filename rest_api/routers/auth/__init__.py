"""
Authentication routers - /api/auth/*
Handles registration, login, user info and staff approval.
"""

from .routes import router

__all__ = ["router"]
