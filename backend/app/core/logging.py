"""
logging.py — Logging Setup for the Valuation Backend

Purpose:
- One line format for every module: timestamp | level | logger | message.
- Snapshot writes, plan generation/refills and bulk recalculation summaries
  log at INFO; narrative fallbacks at WARNING; per-company batch failures via
  logger.exception.

Output goes to stderr through the root handler; uvicorn and pytest's
caplog both pick it up from there.
"""

import logging

# -----------------------------------------------------------------------------
# Format
# -----------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# HTTP client chatter from the narrative provider stays at WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "openai")

# -----------------------------------------------------------------------------
# Setup
# -----------------------------------------------------------------------------

def configure_logging(level: str = "INFO") -> None:
    """
    Install the root handler. Call once, from main.py or a script's main().

    Parameters:
        level (str): "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL";
                     unknown names fall back to INFO
    """
    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))

    logging.getLogger(__name__).info("Logging configured at %s", logging.getLevelName(resolved))


def get_logger(name: str) -> logging.Logger:
    """
    Module logger:

        from app.core.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Snapshot %s written", snapshot.id)
    """
    return logging.getLogger(name)
