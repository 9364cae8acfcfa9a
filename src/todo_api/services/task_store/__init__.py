"""Identity-partitioned in-memory task storage."""

from todo_api.services.task_store.dependencies import get_task_store
from todo_api.services.task_store.exceptions import (
    InvalidTaskError,
    TaskNotFoundError,
    TaskStoreError,
)
from todo_api.services.task_store.models import TaskRecord, TaskUpdate
from todo_api.services.task_store.store import Partition, TaskStore

__all__ = [
    "get_task_store",
    "TaskStore",
    "Partition",
    "TaskRecord",
    "TaskUpdate",
    "TaskStoreError",
    "TaskNotFoundError",
    "InvalidTaskError",
]
