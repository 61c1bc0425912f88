"""Pydantic schemas for task results.

Every call to TaskOrchestrator.run() returns a TaskResult. Exactly one of
`data` or `error` is set; callers never see an exception.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# Reasons produced by the orchestrator itself. Task parsers add their own
# (structured_missing, missing_updates, image_missing, ...).
REASON_EXCEPTION = "exception"
REASON_INVALID_RESPONSE = "invalid_response"
REASON_TIMEOUT = "timeout"
REASON_CANCELLED = "cancelled"
REASON_UNKNOWN_TASK = "unknown_task"
REASON_INVALID_JSON = "invalid_json"
REASON_STRUCTURED_MISSING = "structured_missing"


class TaskError(BaseModel):
    """Why a task failed, with a bounded preview of what the model said."""

    model_config = ConfigDict(frozen=True)

    reason: str
    message: str
    raw_preview: Optional[str] = None


class TaskResult(BaseModel):
    """Outcome of one orchestrated task run."""

    model_config = ConfigDict(frozen=True)

    task: str
    provider: Optional[str] = None
    model: Optional[str] = None
    attempts: int = 0
    data: Optional[Any] = None
    error: Optional[TaskError] = None
    metadata: Optional[dict] = Field(
        default=None, description="Normalized usage of the attempt that produced this result",
    )

    @model_validator(mode="after")
    def exactly_one_outcome(self) -> "TaskResult":
        if (self.data is None) == (self.error is None):
            raise ValueError("TaskResult needs exactly one of data or error")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None
