"""Translate one canonical output schema into each provider's JSON-schema dialect.

Canonical schemas are pydantic models (or plain JSON-schema dicts). Providers
disagree on what they accept:

  openai     Structured Outputs, strict mode. Every object must be closed
             (additionalProperties: false) and list every property in
             `required`.
  anthropic  Structured Outputs (beta). Every object must be closed.
  gemini     responseSchema. OpenAPI subset: no additionalProperties, no
             titles/examples/defaults.

Closed schemas cannot express open-ended records (dict[str, Any]). For the
closed families such fields are rewritten as strings carrying a JSON-encoded
object; parsers decode them with decode_json_field().
"""

import copy
import json
from typing import Any, Optional, Union

from pydantic import BaseModel

from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.schema"
logger = get_logger()

CLOSED_FAMILIES = frozenset({"openai", "anthropic"})
SUPPORTED_FAMILIES = frozenset({"openai", "anthropic", "gemini"})

# Keywords providers reject or that only carry documentation
META_KEYWORDS = frozenset({
    "$schema", "$id", "$comment", "$defs", "definitions",
    "title", "examples", "default",
})
GEMINI_UNSUPPORTED = frozenset({"additionalProperties"})

UNION_KEYS = ("anyOf", "oneOf", "allOf")

RECORD_NOTE = "JSON-encoded object (string); decode with json.loads"

CanonicalSchema = Union[type[BaseModel], dict]


def canonical_json_schema(schema: Optional[CanonicalSchema]) -> Optional[dict]:
    """Return a self-contained JSON schema with all $ref pointers inlined."""
    if schema is None:
        return None
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        raw = schema.model_json_schema()
    elif isinstance(schema, dict):
        raw = copy.deepcopy(schema)
    else:
        raise TypeError(f"Unsupported schema type: {type(schema).__name__}")

    defs = {}
    defs.update(raw.get("definitions", {}))
    defs.update(raw.get("$defs", {}))
    return _inline_refs(raw, defs, ())


def _inline_refs(node: Any, defs: dict, stack: tuple[str, ...]) -> Any:
    if isinstance(node, list):
        return [_inline_refs(item, defs, stack) for item in node]
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if isinstance(ref, str):
        name = ref.rsplit("/", 1)[-1]
        if name in stack:
            raise ValueError(f"Recursive schema reference not supported: {name}")
        if name not in defs:
            raise ValueError(f"Unresolvable schema reference: {ref}")
        resolved = _inline_refs(defs[name], defs, stack + (name,))
        siblings = {k: v for k, v in node.items() if k != "$ref"}
        merged = dict(resolved)
        merged.update(_inline_refs(siblings, defs, stack))
        return merged

    return {key: _inline_refs(value, defs, stack) for key, value in node.items()}


def strip_meta_keywords(node: Any, extra: frozenset = frozenset()) -> Any:
    """Recursively drop documentation-only and provider-rejected keywords.

    Keys inside `properties` are field names, not keywords, and are kept.
    """
    drop = META_KEYWORDS | extra
    if isinstance(node, list):
        return [strip_meta_keywords(item, extra) for item in node]
    if not isinstance(node, dict):
        return node

    cleaned = {}
    for key, value in node.items():
        if key == "properties" and isinstance(value, dict):
            cleaned[key] = {
                name: strip_meta_keywords(prop, extra) for name, prop in value.items()
            }
            continue
        if key in drop or (key.startswith("$") and key != "$ref"):
            continue
        cleaned[key] = strip_meta_keywords(value, extra)
    return cleaned


def is_open_record(node: dict) -> bool:
    """True for object nodes with dynamic keys and no declared properties."""
    if node.get("type") != "object" or node.get("properties"):
        return False
    additional = node.get("additionalProperties", True)
    return additional is not False


def _record_as_string(node: dict) -> dict:
    description = node.get("description")
    text = f"{description.rstrip('.')}. {RECORD_NOTE}" if description else RECORD_NOTE
    return {"type": "string", "description": text}


def close_objects(node: Any, require_all: bool = False) -> Any:
    """Force additionalProperties: false on every object node.

    Descends through properties, array items and union branches. Open-ended
    records are rewritten as JSON-encoded strings. With `require_all`, every
    property is listed in `required` (OpenAI strict mode).
    """
    if isinstance(node, list):
        return [close_objects(item, require_all) for item in node]
    if not isinstance(node, dict):
        return node

    if is_open_record(node):
        return _record_as_string(node)

    out = dict(node)
    if out.get("type") == "object":
        props = {
            name: close_objects(prop, require_all)
            for name, prop in (out.get("properties") or {}).items()
        }
        out["properties"] = props
        out["additionalProperties"] = False
        if require_all:
            out["required"] = list(props.keys())

    if out.get("type") == "array" and "items" in out:
        out["items"] = close_objects(out["items"], require_all)

    for key in UNION_KEYS:
        if isinstance(out.get(key), list):
            out[key] = [close_objects(branch, require_all) for branch in out[key]]
    return out


def to_provider_schema(schema: Optional[CanonicalSchema], family: str) -> Optional[dict]:
    """Convert a canonical schema into the given provider family's dialect."""
    if family not in SUPPORTED_FAMILIES:
        raise ValueError(f"Unsupported schema family: {family}")
    canonical = canonical_json_schema(schema)
    if canonical is None:
        return None

    if family == "gemini":
        return strip_meta_keywords(canonical, GEMINI_UNSUPPORTED)

    cleaned = strip_meta_keywords(canonical)
    converted = close_objects(cleaned, require_all=(family == "openai"))
    log.debug(logger, MODULE, "schema_converted", "Converted output schema",
              family=family)
    return converted


def format_for_openai(schema: Optional[CanonicalSchema], name: str = "response") -> Optional[dict]:
    """Wrap a schema as an OpenAI `response_format` (strict json_schema)."""
    converted = to_provider_schema(schema, "openai")
    if converted is None:
        return None
    return {
        "type": "json_schema",
        "json_schema": {
            "name": name,
            "strict": True,
            "schema": converted,
        },
    }


def format_for_anthropic(schema: Optional[CanonicalSchema], name: str = "response") -> Optional[dict]:
    """Wrap a schema as an Anthropic `output_format`."""
    converted = to_provider_schema(schema, "anthropic")
    if converted is None:
        return None
    log.debug(logger, MODULE, "anthropic_format", "Built Anthropic output format",
              schema_name=name)
    return {"type": "json_schema", "schema": converted}


def format_for_gemini(schema: Optional[CanonicalSchema]) -> Optional[dict]:
    """Return a schema usable as Gemini `responseSchema`."""
    return to_provider_schema(schema, "gemini")


def decode_json_field(value: Any) -> Optional[dict]:
    """Decode a record field that a closed-schema provider sent as a string.

    Accepts the already-decoded dict too, so parsers need not care which
    provider produced the value. Returns None when the value is unusable.
    """
    if isinstance(value, dict):
        return value
    if isinstance(value, str) and value.strip():
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            return None
        return decoded if isinstance(decoded, dict) else None
    return None
