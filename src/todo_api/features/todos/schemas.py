"""Pydantic schemas for the todos API. JSON fields are camelCase."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from todo_api.services.task_store import TaskRecord, TaskUpdate


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateTaskRequest(CamelModel):
    """Request model for creating a task."""

    title: str = Field(max_length=500, description="Task title, must not be blank")
    description: str = Field("", max_length=5000, description="Optional details")

    model_config = ConfigDict(
        json_schema_extra={"example": {"title": "Buy milk", "description": "2 litres"}},
    )


class UpdateTaskRequest(CamelModel):
    """Request model for updating a task. Omitted fields are left unchanged."""

    title: str | None = Field(None, max_length=500)
    description: str | None = Field(None, max_length=5000)
    is_completed: bool | None = None

    def to_patch(self) -> TaskUpdate:
        return TaskUpdate(
            title=self.title, description=self.description, is_completed=self.is_completed
        )


class SetCompletedRequest(CamelModel):
    """Request model for setting a task's completion flag."""

    is_completed: bool


class TaskResponse(CamelModel):
    """Response model for a task."""

    id: int
    title: str
    description: str
    is_completed: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: TaskRecord) -> "TaskResponse":
        return cls(**record.model_dump())
