"""Data models for stored tasks."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TaskRecord(BaseModel):
    """
    A task owned by exactly one subject.

    Instances are frozen; the store replaces a record on every mutation, so
    values handed to callers never change underneath them.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=1, description="Unique within the owner's partition")
    title: str
    description: str = ""
    is_completed: bool = False
    created_at: datetime
    updated_at: datetime


class TaskUpdate(BaseModel):
    """Patch for a task. Fields left as None are kept unchanged."""

    title: str | None = None
    description: str | None = None
    is_completed: bool | None = None
