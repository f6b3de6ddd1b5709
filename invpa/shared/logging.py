"""Logging setup for entry points.

Library modules only create module-level loggers; handlers are installed once
by whichever entry point runs the pipeline.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging in the project-wide format.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)

    # The SDK transports log every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
