"""Logging setup for command-line use.

Library modules only create module-level loggers; handlers are installed
by the application. configure_logging() is what the gflow CLI calls.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_HANDLER_NAME = "pygflow-cli"


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach one stream handler to the ``pygflow`` logger.

    Calling it again only updates the level.
    """
    logger = logging.getLogger("pygflow")
    if isinstance(level, str):
        level = level.upper()
    logger.setLevel(level)

    if not any(handler.get_name() == _HANDLER_NAME for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
