"""Logging setup for the `onboard` CLI.

Engine modules log through `logging.getLogger(__name__)` and never call this
themselves; embedding applications keep their own logging configuration.
"""

import logging
import sys

logger = logging.getLogger(__name__)


def configure_logging(log_level: str = "INFO"):
    """Send log records to stderr, once per process.

    Prompts, markdown and the completion summary are printed on stdout by
    the rich console, so log lines never interleave with what the user
    copies from the terminal. Log messages carry step ids and variable
    names only.

    Args:
        log_level: Level name from --log-level or ONBOARD_LOG_LEVEL (DEBUG,
            INFO, WARNING, ERROR); unknown names fall back to INFO
    """
    if hasattr(configure_logging, "has_run"):
        return

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    # Prompts and secrets share the terminal; keep log output encodable
    if hasattr(handler.stream, "reconfigure"):
        try:
            handler.stream.reconfigure(encoding="utf-8", errors="replace")
        except (AttributeError, ValueError, OSError):
            pass

    logging.basicConfig(level=numeric_level, force=True, handlers=[handler])

    configure_logging.has_run = True
    logger.info(f"Logging configured at level: {log_level}")
