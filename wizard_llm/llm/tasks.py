"""The task catalog: every LLM task the gateway can run.

  suggest                  autofill candidates for a job draft       (json)
  refine                   polished job posting + summary            (json)
  channels                 distribution channel recommendations      (json)
  chat                     copilot reply                             (text)
  video_caption            caption + hashtags for a recruiting video (json)
  image_prompt_generation  prompt for an image model                 (json)
  image_generation         the image itself                          (image output)
  golden_db_update         facts extracted from an interview turn    (json)
"""

from wizard_llm.llm.parsers import (
    parse_channels,
    parse_chat,
    parse_golden_db_update,
    parse_image_generation,
    parse_image_prompt,
    parse_refine,
    parse_suggest,
    parse_video_caption,
)
from wizard_llm.llm.providers.base import TaskCapabilities
from wizard_llm.llm.registry import TaskDescriptor, TaskRegistry
from wizard_llm.prompts import tasks as prompts
from wizard_llm.schemas.llm_outputs import (
    ChannelsOutput,
    GoldenDbUpdateOutput,
    ImagePromptOutput,
    RefineOutput,
    SuggestOutput,
    VideoCaptionOutput,
)

TASK_CATALOG: dict[str, TaskDescriptor] = {
    "suggest": TaskDescriptor(
        system=prompts.SUGGEST_SYSTEM,
        builder=prompts.build_suggest,
        parser=parse_suggest,
        mode="json",
        temperature=0.1,
        max_tokens={"default": 600, "gemini": 8192},
        retries=2,
        strict_on_retry=True,
        output_schema=SuggestOutput,
        output_schema_name="suggest_output",
        capabilities=TaskCapabilities(search_grounding=True, maps_grounding=True),
        preview_label="Suggestion",
    ),
    "refine": TaskDescriptor(
        system=prompts.REFINE_SYSTEM,
        builder=prompts.build_refine,
        parser=parse_refine,
        mode="json",
        temperature=0.15,
        max_tokens={"default": 900, "gemini": 8192},
        retries=2,
        strict_on_retry=True,
        output_schema=RefineOutput,
        output_schema_name="refine_output",
        capabilities=TaskCapabilities(search_grounding=True, maps_grounding=True),
        preview_label="Refinement",
    ),
    "channels": TaskDescriptor(
        system=prompts.CHANNELS_SYSTEM,
        builder=prompts.build_channels,
        parser=parse_channels,
        mode="json",
        temperature=0.2,
        max_tokens={"default": 600, "gemini": 8192},
        retries=2,
        strict_on_retry=True,
        output_schema=ChannelsOutput,
        output_schema_name="channels_output",
        preview_label="Channels",
    ),
    "chat": TaskDescriptor(
        system=prompts.CHAT_SYSTEM,
        builder=prompts.build_chat,
        parser=parse_chat,
        mode="text",
        temperature=0.4,
        max_tokens=400,
        retries=1,
        strict_on_retry=False,
    ),
    "video_caption": TaskDescriptor(
        system=prompts.VIDEO_CAPTION_SYSTEM,
        builder=prompts.build_video_caption,
        parser=parse_video_caption,
        mode="json",
        temperature=0.5,
        max_tokens={"default": 300, "gemini": 2048},
        retries=2,
        strict_on_retry=True,
        output_schema=VideoCaptionOutput,
        output_schema_name="video_caption_output",
        preview_label="Video caption",
    ),
    "image_prompt_generation": TaskDescriptor(
        system=prompts.IMAGE_PROMPT_SYSTEM,
        builder=prompts.build_image_prompt,
        parser=parse_image_prompt,
        mode="json",
        temperature=0.5,
        max_tokens={"default": 600, "gemini": 4096},
        retries=2,
        strict_on_retry=True,
        output_schema=ImagePromptOutput,
        output_schema_name="image_prompt_output",
        capabilities=TaskCapabilities(search_grounding=True),
    ),
    "image_generation": TaskDescriptor(
        system=prompts.IMAGE_GENERATION_SYSTEM,
        builder=prompts.build_image_generation,
        parser=parse_image_generation,
        mode="text",
        temperature=0.4,
        max_tokens={"default": 1024, "gemini": 8192},
        retries=1,
        strict_on_retry=False,
        capabilities=TaskCapabilities(image_output=True),
    ),
    "golden_db_update": TaskDescriptor(
        system=prompts.GOLDEN_DB_UPDATE_SYSTEM,
        builder=prompts.build_golden_db_update,
        parser=parse_golden_db_update,
        mode="json",
        temperature=0.1,
        max_tokens={"default": 1000, "gemini": 4096},
        retries=2,
        strict_on_retry=True,
        output_schema=GoldenDbUpdateOutput,
        output_schema_name="golden_db_update_output",
    ),
}


def build_registry() -> TaskRegistry:
    return TaskRegistry(TASK_CATALOG)
