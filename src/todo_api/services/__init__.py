"""Shared services module for authentication, storage and integrations."""

from todo_api.services.posthog import PostHogService

__all__ = [
    "PostHogService",
]
