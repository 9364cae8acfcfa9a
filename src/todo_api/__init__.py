"""Per-user task list API behind multi-issuer bearer token authentication."""

__version__ = "0.1.0"
