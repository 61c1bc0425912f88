"""Pydantic schemas for LLM task outputs.

These schemas define the structure expected from each JSON task. They serve
two purposes:
1. Provider enforcement: the schema converter turns them into each
   provider's structured-output dialect
2. Item validation: parsers validate individual entries and drop the ones
   that do not fit, instead of failing the whole response

Field names match the JSON keys the prompts ask for.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# JOB DOMAIN
# =============================================================================

JOB_FIELD_IDS = (
    "roleTitle",
    "companyName",
    "location",
    "zipCode",
    "industry",
    "seniorityLevel",
    "employmentType",
    "workModel",
    "jobDescription",
    "coreDuties",
    "mustHaves",
    "benefits",
    "currency",
    "salary",
    "salaryPeriod",
)

JOB_REQUIRED_FIELDS = (
    "roleTitle",
    "companyName",
    "location",
    "seniorityLevel",
    "employmentType",
    "jobDescription",
)

SUPPORTED_CHANNELS = (
    "job_board",
    "facebook",
    "tiktok",
    "reddit",
    "instagram",
    "discord",
    "linkedin",
    "telegram",
    "other",
)


# =============================================================================
# SUGGEST OUTPUT
# =============================================================================

class AutofillCandidate(BaseModel):
    """One suggested value for a job field."""
    fieldId: str = Field(..., description="Must be one of the job schema field ids")
    value: Union[str, list[str], float] = Field(
        ..., description="Suggested value: text, list of bullet items, or number",
    )
    rationale: str = Field(default="", description="Concise reason for the suggestion")
    confidence: Optional[float] = Field(default=None, description="0.0-1.0")
    source: str = Field(default="expert-assistant")

    @field_validator("confidence")
    @classmethod
    def drop_out_of_range(cls, v: Optional[float]) -> Optional[float]:
        """Out-of-range confidence is discarded, not clamped."""
        if v is None or not 0.0 <= v <= 1.0:
            return None
        return v


class SuggestOutput(BaseModel):
    """Output of the suggest task."""
    autofill_candidates: list[AutofillCandidate] = Field(default_factory=list)


# =============================================================================
# REFINE OUTPUT
# =============================================================================

class RefineOutput(BaseModel):
    """Output of the refine task.

    refined_job is keyed by job field id. It is an open record, so closed
    schema providers receive it as a JSON-encoded string.
    """
    refined_job: dict[str, Any] = Field(
        default_factory=dict,
        description="Refined job fields keyed by field id",
    )
    summary: str = Field(default="", description="One paragraph on what changed and why")


# =============================================================================
# CHANNELS OUTPUT
# =============================================================================

class ChannelRecommendation(BaseModel):
    channel: str = Field(..., description="Distribution channel id")
    reason: str = Field(..., description="Why this channel fits the role")
    expectedCPA: Optional[float] = Field(
        default=None, description="Expected cost per application, non-negative",
    )

    @field_validator("expectedCPA")
    @classmethod
    def non_negative(cls, v: Optional[float]) -> Optional[float]:
        return v if v is None or v >= 0 else None


class ChannelsOutput(BaseModel):
    """Output of the channels task."""
    recommendations: list[ChannelRecommendation] = Field(default_factory=list)


# =============================================================================
# VIDEO CAPTION OUTPUT
# =============================================================================

class VideoCaptionOutput(BaseModel):
    caption_text: str = Field(..., description="Caption shown with the video")
    hashtags: list[str] = Field(default_factory=list)


# =============================================================================
# IMAGE PROMPT OUTPUT
# =============================================================================

class ImagePromptOutput(BaseModel):
    prompt: str = Field(..., description="Prompt for the image model")
    negative_prompt: Optional[str] = Field(default=None, description="What to avoid")
    style: Optional[str] = Field(default=None, description="Visual style")


# =============================================================================
# GOLDEN DB UPDATE OUTPUT
# =============================================================================

class GoldenDbUpdateOutput(BaseModel):
    """Structured facts extracted from one interview turn."""
    updates: dict[str, Any] = Field(
        default_factory=dict,
        description="Field path to value for every fact the user stated",
    )
