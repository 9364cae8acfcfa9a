"""Per-user todo list endpoints."""

from todo_api.features.todos.handlers import router

__all__ = ["router"]
