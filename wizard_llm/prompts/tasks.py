"""Prompts for the LLM task catalog.

Each JSON task sends a single JSON document as the user prompt:

  role / mission      who the model is and what it must do
  guardrails          hard rules
  context             the caller's data, with empty values removed
  responseContract    the exact shape to return

On retries of tasks that enable strict mode, STRICT_JSON_NOTE is added as a
guardrail and the previous raw output (truncated) is quoted back so the
model can see what went wrong.

Builders take (context, AttemptState) and return the user prompt string.
"""

import json
from typing import TYPE_CHECKING, Any, Mapping

from wizard_llm.schemas.llm_outputs import JOB_FIELD_IDS, JOB_REQUIRED_FIELDS, SUPPORTED_CHANNELS
from wizard_llm.utils.logging import log, get_logger

if TYPE_CHECKING:
    from wizard_llm.llm.registry import AttemptState

MODULE = "prompts"
logger = get_logger()


# =============================================================================
# SYSTEM PROMPTS
# =============================================================================

SUGGEST_SYSTEM = (
    "You are an expert recruitment assistant. "
    "Respond ONLY with valid JSON that matches the requested structure."
)

REFINE_SYSTEM = (
    "You are a senior hiring editor. "
    "Respond ONLY with valid JSON that matches the requested structure."
)

CHANNELS_SYSTEM = (
    "You are a recruitment marketing strategist. "
    "Respond ONLY with valid JSON that matches the requested structure."
)

CHAT_SYSTEM = "You are Wizard's recruiting copilot. Reply succinctly with actionable guidance."

VIDEO_CAPTION_SYSTEM = "You write short, inclusive captions for recruiting videos. Return valid JSON only."

IMAGE_PROMPT_SYSTEM = (
    "You are an AI art director. Respond ONLY with valid JSON containing the image prompt."
)

IMAGE_GENERATION_SYSTEM = "Generate a single professional image for a job advertisement."

GOLDEN_DB_UPDATE_SYSTEM = (
    "You are a data extraction assistant. Extract structured data from user responses. "
    "Respond ONLY with valid JSON."
)


# =============================================================================
# SHARED PIECES
# =============================================================================

STRICT_JSON_NOTE = (
    "Previous output was not valid JSON. You MUST return a single JSON object that exactly "
    "matches the responseContract. Do not include text before or after the JSON object."
)

JSON_GUARDRAILS = [
    "Return exactly one JSON object. Do not include commentary or characters after the closing brace.",
    "Do not leave trailing commas before closing brackets or braces.",
]


def compact(data: Any) -> dict:
    """Drop None, blank strings and empty lists from a flat mapping."""
    if not isinstance(data, Mapping):
        return {}
    result = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        if isinstance(value, (list, dict)) and not value:
            continue
        result[key] = value
    return result


def render(task: str, payload: dict, state: "AttemptState") -> str:
    """Serialize a prompt payload, adding strict-mode notes on retries."""
    if state.strict_mode:
        payload = dict(payload)
        payload["guardrails"] = list(payload.get("guardrails", [])) + [STRICT_JSON_NOTE]
        if state.last_raw_preview:
            payload["previousInvalidOutput"] = state.last_raw_preview
    serialized = json.dumps(payload, indent=2, ensure_ascii=False, default=str)
    log.debug(logger, MODULE, "prompt_built", f"Built {task} prompt",
              task=task, payload_size=len(serialized),
              attempt=state.attempt, strict_mode=state.strict_mode)
    return serialized


# =============================================================================
# BUILDERS
# =============================================================================

def build_suggest(context: Mapping, state: "AttemptState") -> str:
    updated = context.get("updatedFieldId")
    payload = {
        "role": "You are a Senior Talent Acquisition Specialist and Hiring Strategist.",
        "mission": (
            "Review the job draft and fill in missing or weak fields. Be specific and "
            "authentic; avoid generic recruiting cliches."
        ),
        "guardrails": [
            "Only suggest values for empty fields or fields holding placeholders like 'TBD' or 'n/a'.",
            "If the user's text is a coherent attempt, treat it as the source of truth.",
            "Explain each inferred value in the rationale.",
            "Only return fields listed in jobFieldIds.",
        ] + JSON_GUARDRAILS,
        "trigger": (
            f"The user just updated {updated!r}; re-evaluate dependent fields."
            if updated else "Routine auto-fill check."
        ),
        "jobFieldIds": list(JOB_FIELD_IDS),
        "requiredFields": list(JOB_REQUIRED_FIELDS),
        "jobDraft": compact(context.get("state") or context.get("jobSnapshot")),
        "companyContext": context.get("companyContext"),
        "visibleFieldIds": context.get("visibleFieldIds"),
        "responseContract": {
            "autofill_candidates": [{
                "fieldId": "string (one of jobFieldIds)",
                "value": "string | string[] | number",
                "rationale": "string",
                "confidence": "number (0.0 to 1.0)",
                "source": "expert-assistant",
            }],
        },
    }
    return render("suggest", compact(payload), state)


def build_refine(context: Mapping, state: "AttemptState") -> str:
    payload = {
        "role": "You are a senior hiring editor polishing a job posting before publication.",
        "guardrails": [
            "Keep every fact the employer provided; improve clarity, inclusiveness and structure.",
            "Do not invent compensation, benefits or company facts.",
            "refined_job is keyed by jobFieldIds.",
        ] + JSON_GUARDRAILS,
        "jobFieldIds": list(JOB_FIELD_IDS),
        "jobSnapshot": compact(context.get("jobSnapshot")),
        "companyContext": context.get("companyContext"),
        "responseContract": {
            "refined_job": {"<fieldId>": "string | string[]"},
            "summary": "string (what changed and why)",
        },
    }
    return render("refine", compact(payload), state)


def build_channels(context: Mapping, state: "AttemptState") -> str:
    supported = context.get("supportedChannels") or list(SUPPORTED_CHANNELS)
    payload = {
        "role": "You recommend where to advertise a job to reach qualified applicants.",
        "guardrails": [
            "Recommend only channels from supportedChannels.",
            "Give each recommendation a specific reason tied to the role.",
            "expectedCPA is optional and must be a non-negative number.",
        ] + JSON_GUARDRAILS,
        "supportedChannels": supported,
        "jobSnapshot": compact(context.get("jobSnapshot")),
        "responseContract": {
            "recommendations": [{"channel": "string", "reason": "string", "expectedCPA": "number?"}],
        },
    }
    return render("channels", compact(payload), state)


def build_chat(context: Mapping, state: "AttemptState") -> str:
    message = context.get("userMessage")
    if not isinstance(message, str) or not message.strip():
        return ""
    payload = {
        "userMessage": message.strip(),
        "draftState": context.get("draftState"),
        "intent": context.get("intent"),
    }
    return json.dumps(compact(payload), ensure_ascii=False, default=str)


def build_video_caption(context: Mapping, state: "AttemptState") -> str:
    spec = context.get("spec") or {}
    if not spec:
        raise ValueError("Video caption prompt requires spec")
    payload = {
        "guardrails": [
            "Caption must be between 20 and 30 words.",
            "Keep tone human, bias-free, and specific to the role.",
            "Mention pay or benefits only if provided.",
        ] + JSON_GUARDRAILS,
        "channel": compact({
            "id": spec.get("channelId"),
            "placement": spec.get("placementName"),
            "caption_notes": spec.get("captionNotes"),
            "default_hashtags": spec.get("defaultHashtags"),
        }),
        "jobContext": compact(context.get("jobSnapshot")),
        "responseContract": {
            "caption_text": "20-30 word string",
            "hashtags": ["lowercase-without-spaces"],
        },
    }
    return render("video_caption", compact(payload), state)


def build_image_prompt(context: Mapping, state: "AttemptState") -> str:
    payload = {
        "role": "You craft a vivid prompt for a professional image promoting a job opportunity.",
        "guardrails": [
            "Focus on inclusive, modern workplace visuals; avoid stereotypes.",
            "Do not invent company names or logos beyond what is provided.",
            "Describe lighting, composition, environment and mood explicitly.",
            "Put anything to avoid inside negative_prompt.",
        ] + JSON_GUARDRAILS,
        "jobContext": compact(context.get("refinedJob") or context.get("jobSnapshot")),
        "companyContext": context.get("companyContext"),
        "responseContract": {
            "prompt": "string",
            "negative_prompt": "string | null",
            "style": "string | null",
        },
    }
    return render("image_prompt_generation", compact(payload), state)


def build_image_generation(context: Mapping, state: "AttemptState") -> str:
    """Image tasks send the JSON image payload the image adapters decode."""
    payload = {
        "prompt": context.get("prompt") or "",
        "negative_prompt": context.get("negativePrompt"),
        "style": context.get("style"),
        "aspect_ratio": context.get("aspectRatio") or "1:1",
        "size": context.get("size") or "1024x1024",
        "seed": context.get("seed"),
    }
    if not payload["prompt"].strip():
        return ""
    return json.dumps(payload)


def build_golden_db_update(context: Mapping, state: "AttemptState") -> str:
    payload = {
        "mission": "Extract every fact the user stated and map it to the schema field paths.",
        "guardrails": [
            "Only extract what the user actually said.",
            "Use dotted field paths as keys inside updates.",
        ] + JSON_GUARDRAILS,
        "targetField": context.get("targetField"),
        "userInput": context.get("userInput"),
        "currentSchema": context.get("currentSchema") or {},
        "responseContract": {"updates": {"<field.path>": "value"}},
    }
    return render("golden_db_update", compact(payload), state)
