"""Semantic normalizers for LLM task outputs.

Schema validation says an entry has the right shape. These helpers decide
whether its content is usable:

- Suggest: fieldId must be a known job field
- Refine: empty values fall back to the caller's job snapshot
- Channels: channel must be supported, reason non-empty, no duplicates
- Caption: hashtags trimmed, empty ones dropped

Invalid entries are dropped and logged; they never fail the whole task.
"""

import re
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ValidationError

from wizard_llm.schemas.llm_outputs import (
    JOB_FIELD_IDS,
    SUPPORTED_CHANNELS,
    AutofillCandidate,
    ChannelRecommendation,
)
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.validators"
logger = get_logger()

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def canonicalize_channel(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return _NON_ALNUM.sub("_", value.strip().lower()).strip("_")


SUPPORTED_CHANNEL_MAP = {canonicalize_channel(c): c for c in SUPPORTED_CHANNELS}


def _validated(model: type[BaseModel], entries: Any, kind: str) -> list:
    """Validate list entries one by one, dropping the ones that fail."""
    if not isinstance(entries, list):
        return []
    valid = []
    for i, entry in enumerate(entries):
        try:
            valid.append(model.model_validate(entry))
        except ValidationError as e:
            log.debug(logger, MODULE, "entry_dropped", f"Dropped invalid {kind} entry",
                      index=i, errors=e.error_count())
    return valid


def normalize_candidates(raw: Any) -> list[dict]:
    """Keep autofill candidates for known job fields only."""
    if isinstance(raw, list):
        raw = [
            {**entry, "fieldId": entry.get("fieldId", entry.get("field_id"))}
            if isinstance(entry, dict) else entry
            for entry in raw
        ]
    candidates = []
    for candidate in _validated(AutofillCandidate, raw, "autofill candidate"):
        if candidate.fieldId not in JOB_FIELD_IDS:
            log.debug(logger, MODULE, "unknown_field", "Dropped candidate for unknown field",
                      field_id=candidate.fieldId)
            continue
        candidates.append(candidate.model_dump(exclude_none=True))
    return candidates


def _clean_value(value: Any) -> Any:
    if isinstance(value, list):
        cleaned = [item.strip() if isinstance(item, str) else item for item in value]
        cleaned = [item for item in cleaned if item is not None and item != ""]
        return cleaned or None
    if isinstance(value, str):
        return value.strip() or None
    return value


def normalize_refined_job(refined: Optional[Mapping], base: Optional[Mapping] = None) -> dict:
    """Merge the refined job over the base snapshot, known fields only."""
    refined = refined or {}
    base = base or {}
    result = {}
    for field_id in JOB_FIELD_IDS:
        value = _clean_value(refined.get(field_id))
        if value is None:
            value = _clean_value(base.get(field_id))
        if value is not None:
            result[field_id] = value
    return result


def normalize_channel_recommendations(
    raw: Any,
    supported: Optional[Iterable[str]] = None,
) -> list[dict]:
    """Map channels onto the supported set, dropping duplicates and blanks."""
    allowed = (
        {canonicalize_channel(c): c for c in supported if isinstance(c, str)}
        if supported is not None else SUPPORTED_CHANNEL_MAP
    )
    seen = set()
    result = []
    for rec in _validated(ChannelRecommendation, raw, "channel recommendation"):
        channel = allowed.get(canonicalize_channel(rec.channel))
        reason = rec.reason.strip()
        if not channel or channel in seen or not reason:
            continue
        seen.add(channel)
        entry = {"channel": channel, "reason": reason}
        if rec.expectedCPA is not None:
            entry["expectedCPA"] = rec.expectedCPA
        result.append(entry)
    return result


def normalize_hashtags(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [tag.strip() for tag in raw if isinstance(tag, str) and tag.strip()]
