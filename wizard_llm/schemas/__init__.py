"""Pydantic schemas for structured data validation.

This package contains:
- api.py: Request/response schemas for the REST API
- llm_outputs.py: Output schemas for JSON tasks (also sent to providers)
- results.py: TaskResult / TaskError returned by the orchestrator

Model output is validated against these schemas BEFORE being handed to the
rest of the system. This provides a clear contract and catches malformed
outputs early.
"""

from wizard_llm.schemas.llm_outputs import (
    AutofillCandidate,
    SuggestOutput,
    RefineOutput,
    ChannelRecommendation,
    ChannelsOutput,
    VideoCaptionOutput,
    ImagePromptOutput,
    GoldenDbUpdateOutput,
)

from wizard_llm.schemas.results import (
    TaskError,
    TaskResult,
)

from wizard_llm.schemas.api import (
    TaskRunRequest,
    TaskInfo,
    TaskListResponse,
)

__all__ = [
    # LLM outputs
    "AutofillCandidate",
    "SuggestOutput",
    "RefineOutput",
    "ChannelRecommendation",
    "ChannelsOutput",
    "VideoCaptionOutput",
    "ImagePromptOutput",
    "GoldenDbUpdateOutput",
    # Results
    "TaskError",
    "TaskResult",
    # API
    "TaskRunRequest",
    "TaskInfo",
    "TaskListResponse",
]
