"""Pydantic schemas for API requests/responses."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskRunRequest(BaseModel):
    """Request body for POST /llm."""
    model_config = ConfigDict(populate_by_name=True)

    task_type: str = Field(..., alias="taskType", description="Registered task name")
    context: dict[str, Any] = Field(default_factory=dict, description="Task input")
    timeout_s: Optional[float] = Field(
        default=None, alias="timeoutS", gt=0, description="Deadline for the whole run",
    )

    @field_validator("task_type")
    @classmethod
    def task_type_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("taskType must not be empty")
        return v.strip()


class TaskInfo(BaseModel):
    """One configured task and where it runs."""
    task: str
    provider: str
    model: str
    mode: str
    retries: int


class TaskListResponse(BaseModel):
    tasks: list[TaskInfo]
