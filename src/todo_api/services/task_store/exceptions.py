"""Custom exceptions for the task store."""


class TaskStoreError(Exception):
    """Base exception for all task store errors."""

    pass


class TaskNotFoundError(TaskStoreError):
    """
    Raised when a task does not exist in the caller's partition.

    A task owned by another subject is reported exactly like a task that
    never existed.
    """

    def __init__(self, task_id: int):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class InvalidTaskError(TaskStoreError):
    """Raised when task input is invalid (e.g. a blank title)."""

    pass
