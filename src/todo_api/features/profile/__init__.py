"""Caller profile endpoint."""

from todo_api.features.profile.handlers import router

__all__ = ["router"]
