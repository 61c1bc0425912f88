"""Task parsers: InvocationResponse → normalized dict, or TaskError.

Parsers never raise on bad model output. They return a TaskError with a
reason the orchestrator can retry on:

  structured_missing  no JSON could be recovered
  invalid_json        JSON was recovered but is not an object
  missing_updates     golden_db_update JSON had no updates object
  caption_missing     video caption JSON without caption text
  invalid_prompt      image prompt JSON without a prompt
  image_missing       image provider returned no image
  empty_response      chat reply was empty
"""

from typing import Any, Mapping, Union

from wizard_llm.llm.parser import parse_json_content, safe_preview
from wizard_llm.llm.providers.base import InvocationResponse
from wizard_llm.llm.schema_converter import decode_json_field
from wizard_llm.llm.validators import (
    normalize_candidates,
    normalize_channel_recommendations,
    normalize_hashtags,
    normalize_refined_job,
)
from wizard_llm.schemas.results import REASON_INVALID_JSON, REASON_STRUCTURED_MISSING, TaskError


def _error(reason: str, message: str, response: InvocationResponse) -> TaskError:
    return TaskError(reason=reason, message=message, raw_preview=safe_preview(response.text))


def _json_object(response: InvocationResponse, what: str) -> Union[dict, TaskError]:
    """The response as a JSON object, or the TaskError explaining why not."""
    parsed = parse_json_content(response)
    if parsed is None:
        return _error(REASON_STRUCTURED_MISSING, f"LLM did not return valid {what} JSON", response)
    if not isinstance(parsed, dict):
        return _error(REASON_INVALID_JSON,
                      f"Expected a JSON object for {what}, got {type(parsed).__name__}", response)
    return parsed


def _first(parsed: Mapping, *keys: str) -> Any:
    for key in keys:
        if parsed.get(key) is not None:
            return parsed[key]
    return None


def parse_suggest(response: InvocationResponse, context: Mapping) -> Union[dict, TaskError]:
    parsed = _json_object(response, "autofill_candidates")
    if isinstance(parsed, TaskError):
        return parsed
    raw = _first(parsed, "autofill_candidates", "autofillCandidates", "candidates") or []
    return {"candidates": normalize_candidates(raw)}


def parse_refine(response: InvocationResponse, context: Mapping) -> Union[dict, TaskError]:
    parsed = _json_object(response, "refinement")
    if isinstance(parsed, TaskError):
        return parsed
    refined = decode_json_field(_first(parsed, "refined_job", "refinedJob")) or {}
    summary = parsed.get("summary")
    return {
        "refinedJob": normalize_refined_job(refined, context.get("jobSnapshot")),
        "summary": summary.strip() if isinstance(summary, str) and summary.strip() else None,
    }


def parse_channels(response: InvocationResponse, context: Mapping) -> Union[dict, TaskError]:
    parsed = _json_object(response, "channel recommendations")
    if isinstance(parsed, TaskError):
        return parsed
    raw = _first(parsed, "recommendations", "channels") or []
    supported = context.get("supportedChannels")
    return {
        "recommendations": normalize_channel_recommendations(
            raw, supported if isinstance(supported, list) else None,
        ),
    }


def parse_chat(response: InvocationResponse, context: Mapping) -> Union[dict, TaskError]:
    text = (response.text or "").strip()
    if not text:
        return _error("empty_response", "LLM did not return a chat response", response)
    return {"message": text}


def parse_video_caption(response: InvocationResponse, context: Mapping) -> Union[dict, TaskError]:
    parsed = _json_object(response, "caption")
    if isinstance(parsed, TaskError):
        return parsed
    caption = _first(parsed, "caption_text", "caption")
    if not isinstance(caption, str) or not caption.strip():
        return _error("caption_missing", "Caption text missing", response)
    return {"caption": {"text": caption.strip(), "hashtags": normalize_hashtags(parsed.get("hashtags"))}}


def parse_image_prompt(response: InvocationResponse, context: Mapping) -> Union[dict, TaskError]:
    parsed = _json_object(response, "image prompt")
    if isinstance(parsed, TaskError):
        return parsed
    prompt = parsed.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        return _error("invalid_prompt", "Image prompt JSON missing prompt field", response)
    negative = _first(parsed, "negative_prompt", "negativePrompt")
    style = parsed.get("style")
    return {
        "prompt": prompt.strip(),
        "negativePrompt": negative.strip() if isinstance(negative, str) and negative.strip() else None,
        "style": style.strip() if isinstance(style, str) and style.strip() else None,
    }


def parse_image_generation(response: InvocationResponse, context: Mapping) -> Union[dict, TaskError]:
    data = response.data if isinstance(response.data, dict) else _json_object(response, "image")
    if isinstance(data, TaskError):
        return data
    if not data.get("imageBase64") and not data.get("imageUrl"):
        return TaskError(reason="image_missing", message="Image provider payload missing image data")
    return {
        "imageBase64": data.get("imageBase64"),
        "imageUrl": data.get("imageUrl"),
        "mimeType": data.get("mimeType"),
    }


def parse_golden_db_update(response: InvocationResponse, context: Mapping) -> Union[dict, TaskError]:
    parsed = _json_object(response, "golden_db_update")
    if isinstance(parsed, TaskError):
        return parsed
    raw = parsed.get("updates")
    if raw is None and isinstance(parsed.get("extraction"), dict):
        raw = parsed["extraction"].get("updates")
    updates = decode_json_field(raw) if raw is not None else None
    if updates is None:
        return _error("missing_updates", "golden_db_update JSON has no updates object", response)
    return {"updates": updates}
