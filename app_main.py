"""Application entry point for the quiz attempt service."""

from __future__ import annotations

from quiz_attempts.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_attempts.core.attempt_manager import AttemptManager
from quiz_attempts.server.api_server import run_api_server
from quiz_attempts.utils.logging_config import configure_logging


def main() -> None:
    """Initialize logging and serve the attempt API."""
    logger = configure_logging()
    logger.info("Starting quiz attempt service on %s:%s", DEFAULT_HOST, DEFAULT_PORT)

    attempt_manager = AttemptManager()
    run_api_server(attempt_manager=attempt_manager, host=DEFAULT_HOST, port=DEFAULT_PORT)


if __name__ == "__main__":
    main()
