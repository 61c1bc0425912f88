"""JSON extraction from LLM responses.

LLMs often wrap JSON in markdown code blocks, <think> tags, or preamble text,
and occasionally stop mid-object. This module recovers a JSON value from raw
LLM output without ever raising.

Stages, applied in order, stopping at the first success:
  1. Direct parse
  2. Fenced code block (```json ... ``` preferred, then generic ``` ... ```)
  3. Slice from the first opening brace/bracket to the last closing one
  4. Bounded repair: close open strings/brackets, drop trailing commas

Any success at stage 2 or later is logged as a warning: the provider output
was semi-malformed and is being tolerated.
"""

import json
import re
from typing import Any, Optional

from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.parser"
logger = get_logger()

PREVIEW_CHARS = 400

_JSON_FENCE = re.compile(r"```json(.*?)```", re.DOTALL | re.IGNORECASE)
_GENERIC_FENCE = re.compile(r"```(?:[a-zA-Z0-9_-]*\n)?(.*?)```", re.DOTALL)
_THINK = re.compile(r"<think>(.*?)</think>", re.DOTALL)

_CLOSERS = {"{": "}", "[": "]"}


def strip_think_tags(raw: str) -> tuple[str, Optional[str]]:
    """Strip <think>...</think> tags from reasoning model output.

    Returns:
        Tuple of (content_after_think, thinking_content). If no tags are
        found, returns (raw, None).
    """
    think_match = _THINK.search(raw)
    if think_match:
        thinking = think_match.group(1)
        after = raw[think_match.end():].strip()
        return after, thinking
    return raw, None


def _try_parse(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return False, None


def _unfence(text: str) -> Optional[str]:
    """Return the interior of a fenced code block, json-tagged first."""
    match = _JSON_FENCE.search(text) or _GENERIC_FENCE.search(text)
    if match:
        return match.group(1).strip()
    return None


def _slice_candidate(text: str) -> Optional[str]:
    """Cut from the first '{'/'[' to the last '}'/']'."""
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    end = max(text.rfind("}"), text.rfind("]"))
    if not starts:
        return None
    start = min(starts)
    if end <= start:
        return None
    return text[start:end + 1]


def _drop_trailing_comma(out: list[str]) -> None:
    """Remove a comma left dangling before a closer (whitespace kept)."""
    i = len(out)
    while i and out[i - 1].isspace():
        i -= 1
    if i and out[i - 1] == ",":
        del out[i - 1]


def repair_json_string(text: str) -> Optional[str]:
    """Best-effort repair of truncated or sloppy JSON text.

    Closes an unterminated string, appends missing closers in nesting order,
    removes trailing commas before closers, and makes sure the text ends in a
    closing character. String contents are never rewritten. Returns None for
    empty input.
    """
    if not text or not text.strip():
        return None
    text = text.strip()
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if starts:
        text = text[min(starts):]

    out: list[str] = []
    stack: list[str] = []
    in_string = False
    escape_next = False
    for char in text:
        if escape_next:
            escape_next = False
        elif in_string:
            if char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in ("}", "]"):
            _drop_trailing_comma(out)
            if stack and stack[-1] == char:
                stack.pop()
        out.append(char)

    if in_string:
        out.append('"')
    elif stack:
        _drop_trailing_comma(out)
    out.extend(reversed(stack))
    text = "".join(out)

    if not text.endswith(("}", "]")):
        text += "}"
    return text


def extract_json(raw: Optional[str]) -> Any:
    """Extract a JSON value from LLM output.

    Handles:
    - Raw JSON: {"key": "value"}
    - Markdown blocks: ```json\\n{"key": "value"}\\n```
    - <think> tags: <think>...</think>{"key": "value"}
    - Preamble/trailing prose around the object
    - Truncated output: {"key": "value", "other": [1, 2

    Returns:
        The parsed value, or None when nothing could be recovered. Never raises.
    """
    if not isinstance(raw, str) or not raw.strip():
        return None

    # Stage 1: direct parse (ideal case). Runs before think stripping so a
    # "<think>" inside a string value stays intact.
    ok, value = _try_parse(raw.strip())
    if ok:
        return value

    text, thinking = strip_think_tags(raw.strip())
    if thinking:
        log.debug(logger, MODULE, "stripped_think", "Stripped <think> tags from response")
        ok, value = _try_parse(text)
        if ok:
            return value

    # Stage 2: fenced code block
    fenced = _unfence(text)
    if fenced is not None:
        ok, value = _try_parse(fenced)
        if ok:
            log.warning(logger, MODULE, "fence_recovered",
                        "Parsed JSON from fenced code block",
                        raw_length=len(raw))
            return value
        text = fenced

    # Stage 3: outermost braces
    candidate = _slice_candidate(text)
    if candidate is not None:
        ok, value = _try_parse(candidate)
        if ok:
            log.warning(logger, MODULE, "truncate_recovered",
                        "Parsed JSON after trimming surrounding text",
                        raw_length=len(raw))
            return value

    # Stage 4: bounded repair
    repaired = repair_json_string(text)
    if repaired is not None:
        ok, value = _try_parse(repaired)
        if ok:
            log.warning(logger, MODULE, "repair_recovered",
                        "JSON repair succeeded",
                        preview=repaired[:120])
            return value

    log.warning(logger, MODULE, "extract_failed",
                "Could not extract JSON from LLM output",
                raw_length=len(raw), preview=raw[:200])
    return None


def parse_json_content(response: Any) -> Any:
    """Prefer the adapter's pre-parsed payload, else extract from text.

    Used by task parsers: `response` is an InvocationResponse.
    """
    data = getattr(response, "data", None)
    if isinstance(data, (dict, list)):
        return data
    return extract_json(getattr(response, "text", None))


def safe_preview(raw: Any, limit: int = PREVIEW_CHARS) -> Optional[str]:
    """Bounded preview of raw output for diagnostics."""
    return raw[:limit] if isinstance(raw, str) else None
