"""Raw traffic audit log.

Every provider request and response is appended as one JSON line:

  {"timestamp": "...", "task_id": "suggest", "direction": "REQUEST",
   "endpoint": "/llm", "provider_endpoint": "https://...", "payload": {...}}

Logging is best effort: a failure here is logged and swallowed, it never
affects the request being audited.

Large binary media is never written. Any string that is long and made only
of base64 characters is replaced with a placeholder. For image tasks the
well-known image payload keys are replaced as well, whatever their length.
"""

import asyncio
import json
import os
import re
from datetime import datetime, timezone
from typing import Any, Optional

from wizard_llm.llm.request_context import get_request_route
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.audit"
logger = get_logger()

IMAGE_DATA_PLACEHOLDER = "<BASE64_IMAGE_DATA_OMITTED>"
BASE64_LENGTH_THRESHOLD = 1024
_BASE64 = re.compile(r"^[A-Za-z0-9+/=_-]+$")
_WHITESPACE = re.compile(r"\s+")

IMAGE_BASE64_KEYS = frozenset({
    "bytesBase64Encoded",
    "b64_json",
    "imageBase64",
    "image_base64",
    "base64",
    "base64Image",
    "base64_image",
    "dataUri",
    "dataURL",
    "data_url",
})

REQUEST = "REQUEST"
RESPONSE = "RESPONSE"


def is_image_task(task_id: Any) -> bool:
    return isinstance(task_id, str) and "image" in task_id.lower()


def _looks_like_base64(value: str) -> bool:
    compact = _WHITESPACE.sub("", value)
    return len(compact) >= BASE64_LENGTH_THRESHOLD and bool(_BASE64.match(compact))


def sanitize_payload(payload: Any, redact_images: bool = False) -> Any:
    """Return a copy of `payload` with binary media replaced.

    The input is never mutated. Cyclic references are replaced with None.
    """
    seen: set[int] = set()

    def visit(value: Any) -> Any:
        if isinstance(value, str):
            return IMAGE_DATA_PLACEHOLDER if _looks_like_base64(value) else value
        if isinstance(value, (bytes, bytearray)):
            return IMAGE_DATA_PLACEHOLDER
        if not isinstance(value, (dict, list, tuple)):
            return value

        if id(value) in seen:
            return None
        seen.add(id(value))
        try:
            if isinstance(value, (list, tuple)):
                return [visit(item) for item in value]

            clone = {}
            for key, item in value.items():
                if redact_images and key == "inlineData" and isinstance(item, dict):
                    inline = {k: visit(v) for k, v in item.items() if k != "data"}
                    if item.get("data"):
                        inline["data"] = IMAGE_DATA_PLACEHOLDER
                    clone[key] = inline
                elif redact_images and key in IMAGE_BASE64_KEYS and isinstance(item, str):
                    clone[key] = IMAGE_DATA_PLACEHOLDER
                else:
                    clone[key] = visit(item)
            return clone
        finally:
            seen.discard(id(value))

    return visit(payload)


class RawTrafficLogger:
    """Append-only JSONL writer for provider traffic."""

    def __init__(self, path: str, enabled: bool = True):
        self.path = path
        self.enabled = enabled

    def build_entry(
        self,
        task_id: Optional[str],
        direction: str,
        payload: Any,
        endpoint: Optional[str] = None,
        provider_endpoint: Optional[str] = None,
    ) -> dict:
        task_id = task_id or "unknown"
        route = endpoint or get_request_route()
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "task_id": task_id,
            "direction": direction,
        }
        if route:
            entry["endpoint"] = route
        if provider_endpoint:
            entry["provider_endpoint"] = provider_endpoint
        entry["payload"] = sanitize_payload(payload, redact_images=is_image_task(task_id))
        return entry

    def _append(self, line: str) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as fh:
            fh.write(line)

    async def record(
        self,
        task_id: Optional[str],
        direction: str,
        payload: Any,
        endpoint: Optional[str] = None,
        provider_endpoint: Optional[str] = None,
    ) -> None:
        """Append one entry. Never raises."""
        if not self.enabled:
            return
        try:
            entry = self.build_entry(task_id, direction, payload, endpoint, provider_endpoint)
            line = json.dumps(entry, default=str) + "\n"
            await asyncio.to_thread(self._append, line)
        except Exception as e:
            log.debug(logger, MODULE, "audit_failed", "Raw traffic audit write failed",
                      error=str(e), error_type=type(e).__name__, task=task_id)
