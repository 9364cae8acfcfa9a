"""In-memory task storage partitioned by authenticated subject."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from todo_api.services.task_store.exceptions import InvalidTaskError, TaskNotFoundError
from todo_api.services.task_store.models import TaskRecord, TaskUpdate

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_TICK = timedelta(microseconds=1)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _clean_title(title: str) -> str:
    cleaned = title.strip() if isinstance(title, str) else ""
    if not cleaned:
        raise InvalidTaskError("Task title must not be empty")
    return cleaned


class Partition:
    """
    The tasks of a single subject.

    Every operation holds the partition lock, so operations on one
    partition are linearizable. Ids come from a per-partition counter and
    are never reused. Timestamps are strictly increasing within the
    partition even if the clock stalls or steps back.
    """

    def __init__(self, subject_id: str, clock: Clock):
        self.subject_id = subject_id
        self._clock = clock
        self._lock = threading.Lock()
        self._records: dict[int, TaskRecord] = {}
        self._next_id = 1
        self._last_stamp: datetime | None = None

    def _stamp(self) -> datetime:
        # Caller holds the lock
        now = self._clock()
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + _TICK
        self._last_stamp = now
        return now

    def _require(self, task_id: int) -> TaskRecord:
        record = self._records.get(task_id)
        if record is None:
            raise TaskNotFoundError(task_id)
        return record

    def list(self) -> list[TaskRecord]:
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def get(self, task_id: int) -> TaskRecord:
        with self._lock:
            return self._require(task_id)

    def create(self, title: str, description: str) -> TaskRecord:
        title = _clean_title(title)
        with self._lock:
            now = self._stamp()
            record = TaskRecord(
                id=self._next_id,
                title=title,
                description=description or "",
                is_completed=False,
                created_at=now,
                updated_at=now,
            )
            self._records[record.id] = record
            self._next_id += 1
            return record

    def update(self, task_id: int, patch: TaskUpdate) -> TaskRecord:
        def changes_for(record: TaskRecord) -> dict[str, object]:
            # Runs after the id lookup, so a missing task wins over a bad title
            changes: dict[str, object] = {}
            if patch.title is not None:
                changes["title"] = _clean_title(patch.title)
            if patch.description is not None:
                changes["description"] = patch.description
            if patch.is_completed is not None:
                changes["is_completed"] = patch.is_completed
            return changes

        return self._mutate(task_id, changes_for)

    def set_completed(self, task_id: int, value: bool) -> TaskRecord:
        return self._mutate(task_id, lambda record: {"is_completed": value})

    def toggle(self, task_id: int) -> TaskRecord:
        return self._mutate(task_id, lambda record: {"is_completed": not record.is_completed})

    def delete(self, task_id: int) -> TaskRecord:
        with self._lock:
            self._require(task_id)
            return self._records.pop(task_id)

    def _mutate(
        self, task_id: int, changes_for: Callable[[TaskRecord], dict[str, object]]
    ) -> TaskRecord:
        with self._lock:
            current = self._require(task_id)
            updated = current.model_copy(
                update={**changes_for(current), "updated_at": self._stamp()}
            )
            self._records[task_id] = updated
            return updated


class TaskStore:
    """
    Task storage isolated per subject identifier.

    Owns a map of subject -> Partition. The store lock only guards
    creation of partitions; all record access goes through the partition's
    own lock, so callers with different subjects never contend. A record is
    reachable only through its owner's partition.

    Attributes:
        _partitions: Lazily created partitions, kept for the store's lifetime
        _clock: Time source for record timestamps

    Example:
        >>> store = TaskStore()
        >>> task = store.create("user-1", "Buy milk", "")
        >>> store.get("user-1", task.id).title
        'Buy milk'
        >>> store.get("user-2", task.id)
        Traceback (most recent call last):
        ...
        TaskNotFoundError: Task 1 not found
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or _utcnow
        self._partitions: dict[str, Partition] = {}
        self._lock = threading.Lock()

    def _partition(self, subject_id: str) -> Partition:
        if not isinstance(subject_id, str) or not subject_id.strip():
            raise InvalidTaskError("Subject identifier must not be empty")

        partition = self._partitions.get(subject_id)
        if partition is not None:
            return partition

        with self._lock:
            partition = self._partitions.get(subject_id)
            if partition is None:
                partition = Partition(subject_id, self._clock)
                self._partitions[subject_id] = partition
                logger.debug("Created task partition", extra={"user_id": subject_id})
            return partition

    def list(self, subject_id: str) -> list[TaskRecord]:
        """Return the subject's tasks, most recently created first."""
        return self._partition(subject_id).list()

    def count(self, subject_id: str) -> int:
        """Return the number of tasks the subject owns."""
        return self._partition(subject_id).count()

    def get(self, subject_id: str, task_id: int) -> TaskRecord:
        """
        Return one of the subject's tasks.

        Raises:
            TaskNotFoundError: If the subject owns no task with this id
        """
        return self._partition(subject_id).get(task_id)

    def create(self, subject_id: str, title: str, description: str = "") -> TaskRecord:
        """
        Create a task in the subject's partition.

        The title is trimmed and must not be blank. The new task gets the
        partition's next id and is not completed.

        Raises:
            InvalidTaskError: If the title is blank
        """
        record = self._partition(subject_id).create(title, description)
        logger.info(
            "Task created", extra={"user_id": subject_id, "task_id": record.id}
        )
        return record

    def update(self, subject_id: str, task_id: int, patch: TaskUpdate) -> TaskRecord:
        """
        Apply a patch to one of the subject's tasks.

        Raises:
            TaskNotFoundError: If the subject owns no task with this id
            InvalidTaskError: If the patch sets a blank title
        """
        return self._partition(subject_id).update(task_id, patch)

    def set_completed(self, subject_id: str, task_id: int, value: bool) -> TaskRecord:
        """
        Set the completion flag of one of the subject's tasks.

        Raises:
            TaskNotFoundError: If the subject owns no task with this id
        """
        return self._partition(subject_id).set_completed(task_id, value)

    def toggle(self, subject_id: str, task_id: int) -> TaskRecord:
        """Flip the completion flag of one of the subject's tasks."""
        return self._partition(subject_id).toggle(task_id)

    def delete(self, subject_id: str, task_id: int) -> None:
        """
        Permanently remove one of the subject's tasks.

        Raises:
            TaskNotFoundError: If the subject owns no task with this id
        """
        self._partition(subject_id).delete(task_id)
        logger.info("Task deleted", extra={"user_id": subject_id, "task_id": task_id})
