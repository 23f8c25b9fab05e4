"""Logging configuration helpers."""

import logging

# httpx logs every request with its absolute URL at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging() -> None:
    """Configure client logging with a single stream handler."""
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logger = logging.getLogger("winboard")
    logger.setLevel(logging.INFO)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
