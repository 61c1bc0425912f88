"""
Structured Logging for Grafana Loki

All logs are JSON with consistent, queryable fields.
Query logs by: module, action, task, provider, etc.

GRAFANA LOKI QUERIES
====================
# All errors
{project="wizard-llm"} | json | level="ERROR"

# Adapter failures for one provider
{project="wizard-llm"} | json | module="llm.orchestrator" action="invoke_failed" provider="gemini"

# Track a single task end-to-end
{project="wizard-llm"} | json | task="suggest"

# Tolerated malformed JSON (repair stages)
{project="wizard-llm"} | json | module="llm.parser" action=~".*_recovered"

# Retries and final failures
{project="wizard-llm"} | json | module="llm.orchestrator" action=~"retry_.*|task_failed"

USAGE
=====
from wizard_llm.utils.logging import log, get_logger, configure_logging

logger = get_logger()
log.info(logger, "llm.orchestrator", "invoke_start", "LLM invocation starting for suggest",
         task="suggest", provider="gemini", attempt=0)

log.error(logger, "llm.orchestrator", "invoke_failed", "LLM adapter invocation failed",
          error=str(e), provider="openai")

ACTION NAMES
============
Orchestrator (module="llm.orchestrator"), one line per state change:
  invoke_start: attempt about to call the adapter (attempt, strict_mode)
  invoke_failed, parse_failed: attempt lost, budget consumed
  retry_scheduled: backoff sleep after an adapter error (delay_s)
  task_done / task_failed: final outcome with attempts and latency_ms
  task_timeout / task_cancelled: run cut short by deadline or cancel()

Parser (module="llm.parser"), WARNING whenever output needed help:
  fence_recovered, truncate_recovered, repair_recovered, extract_failed

Providers (module="llm.providers" and "llm.providers.<provider>"):
  invoke_done with token usage, native_json_fallback, prefill_mode,
  rate_limited, content_missing

API (module="api.llm"): task_requested, unknown_task. Failed audit writes
log audit_failed (module="llm.audit") and never fail the task.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional


class StructuredFormatter(logging.Formatter):
    """JSON formatter for Grafana Loki."""

    def __init__(self, pretty: bool = False):
        super().__init__()
        self.pretty = pretty

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()

        # Structured log (emitted via StructuredLogger)
        if hasattr(record, "_structured") and record._structured:
            data = {
                "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
                "level": record.levelname,
                "module": record._module,
                "action": record._action,
                "msg": msg,
            }
            for key, value in record._extra.items():
                if value is not None:
                    data[key] = value

            if self.pretty:
                return self._pretty(data)
            return json.dumps(data, default=str, separators=(",", ":"))

        # Third-party log: wrap in JSON so Promtail can still parse it
        if self.pretty:
            return msg
        return json.dumps(
            {
                "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
                "level": record.levelname,
                "module": "legacy",
                "action": "log",
                "msg": msg,
            },
            default=str,
            separators=(",", ":"),
        )

    def _pretty(self, data: dict) -> str:
        """Human-readable format for development."""
        ts = data["ts"][11:23]  # HH:MM:SS.mmm
        lvl = data["level"][0]  # I/W/E/D
        mod = data["module"].upper()[:14].ljust(14)
        act = data["action"]
        msg = data["msg"]

        skip = {"ts", "level", "module", "action", "msg"}
        ctx = " ".join(f"{k}={v}" for k, v in data.items() if k not in skip)

        return f"{ts} {lvl} [{mod}] {act}: {msg}" + (f" | {ctx}" if ctx else "")


class StructuredLogger:
    """
    Centralized structured logging.

    All methods accept a stdlib logging.Logger, module name, action name,
    message, and arbitrary context fields.
    """

    def _log(
        self,
        logger: logging.Logger,
        level: int,
        module: str,
        action: str,
        msg: str,
        **kwargs,
    ) -> None:
        """Emit a structured log."""
        extra = {
            "_structured": True,
            "_module": module,
            "_action": action,
            "_extra": {k: v for k, v in kwargs.items() if v is not None},
        }
        logger.log(level, msg, extra=extra)

    def info(
        self,
        logger: logging.Logger,
        module: str,
        action: str,
        msg: str,
        **kwargs,
    ) -> None:
        """Log INFO level."""
        self._log(logger, logging.INFO, module, action, msg, **kwargs)

    def warning(
        self,
        logger: logging.Logger,
        module: str,
        action: str,
        msg: str,
        **kwargs,
    ) -> None:
        """Log WARNING level."""
        self._log(logger, logging.WARNING, module, action, msg, **kwargs)

    def error(
        self,
        logger: logging.Logger,
        module: str,
        action: str,
        msg: str,
        error: Optional[str] = None,
        error_type: Optional[str] = None,
        **kwargs,
    ) -> None:
        """Log ERROR level."""
        self._log(
            logger, logging.ERROR, module, action, msg,
            error=error, error_type=error_type, **kwargs,
        )

    def debug(
        self,
        logger: logging.Logger,
        module: str,
        action: str,
        msg: str,
        **kwargs,
    ) -> None:
        """Log DEBUG level."""
        self._log(logger, logging.DEBUG, module, action, msg, **kwargs)


# Singleton instance, import this everywhere
log = StructuredLogger()

_fallback_logger = None


def get_logger() -> logging.Logger:
    """Get the shared project logger."""
    global _fallback_logger
    if _fallback_logger is None:
        _fallback_logger = logging.getLogger("wizard-llm")
    return _fallback_logger


def configure_logging() -> None:
    """Configure root logger with structured formatter. Call once at startup.

    Reads from environment:
      LOG_FORMAT: "json" (default, for Loki) or "pretty" (for development)
      LOG_LEVEL: "INFO" (default), "DEBUG", "WARNING", "ERROR"
    """
    pretty = os.environ.get("LOG_FORMAT", "json") == "pretty"
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter(pretty=pretty))

    logging.basicConfig(
        level=level,
        handlers=[handler],
        force=True,
    )

    # LangChain / OpenAI SDK: extremely chatty at DEBUG
    logging.getLogger("langchain").setLevel(logging.WARNING)
    logging.getLogger("langchain_core").setLevel(logging.WARNING)
    logging.getLogger("langchain_openai").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    # HTTP clients
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    # Server
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
