"""Log file setup for perfagent.

Every module logs through ``logging.getLogger(__name__)``, so all records
end up under the "perfagent" logger. When logging is enabled they are
appended to a single file; otherwise they are discarded.
"""

import logging
from pathlib import Path

from perfagent.config import LoggingConfig

LOGGER_NAME = "perfagent"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Marks handlers installed here so repeated setup replaces them
_HANDLER_ATTR = "_perfagent_handler"


def setup_logging(config: LoggingConfig) -> logging.Logger:
    """Configure the "perfagent" logger from config.

    Safe to call more than once: handlers from a previous call are closed
    and replaced.

    Args:
        config: Logging section of the agent configuration

    Returns:
        The configured "perfagent" logger
    """
    logger = logging.getLogger(LOGGER_NAME)

    for existing in list(logger.handlers):
        if getattr(existing, _HANDLER_ATTR, False):
            logger.removeHandler(existing)
            existing.close()

    handler: logging.Handler
    if config.enabled:
        path = Path(config.file).expanduser()
        if path.parent != Path():
            path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.setLevel(config.level)
    else:
        handler = logging.NullHandler()

    setattr(handler, _HANDLER_ATTR, True)
    logger.addHandler(handler)
    return logger
