"""PostHog analytics service for event tracking."""

import posthog

from todo_api.config import settings


class PostHogService:
    """Service for tracking analytics events via PostHog. No-op without an API key."""

    def __init__(self) -> None:
        """Initialize PostHog service."""
        if settings.posthog_api_key:
            posthog.api_key = settings.posthog_api_key
            posthog.host = settings.posthog_host

    def capture(self, distinct_id: str, event: str, properties: dict | None = None) -> None:
        """
        Track an event.

        Args:
            distinct_id: Subject identifier, or "anonymous" for rejected callers
            event: Event name (e.g., "user_authenticated", "task_created")
            properties: Optional event properties

        Example:
            >>> service = PostHogService()
            >>> service.capture("6f1c2a6e-...", "task_created", {"task_id": 1})
        """
        if not settings.posthog_api_key:
            return

        posthog.capture(distinct_id=distinct_id, event=event, properties=properties or {})
