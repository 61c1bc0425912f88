"""HTTP server entrypoint.

Builds and validates the orchestrator, then serves the API with uvicorn.

Logging: Uses structured JSON logging for Grafana Loki.
Set LOG_FORMAT=pretty for development-friendly output.
"""

import os

# Configure structured logging BEFORE importing uvicorn
from wizard_llm.utils.logging import configure_logging, get_logger, log  # noqa: E402

configure_logging()

MODULE = "server"
logger = get_logger()

import uvicorn  # noqa: E402

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))


def main():
    log.info(logger, MODULE, "starting", "Starting LLM gateway", host=HOST, port=PORT)
    # Keep the structured root handler
    uvicorn.run("wizard_llm.api.app:app", host=HOST, port=PORT, log_config=None)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        log.info(logger, MODULE, "stopped", "Server stopped by keyboard interrupt")
