"""Logging configuration for the GigFlow backend.

Everything logs under the ``gigflow`` logger tree: the core services use
``logging.getLogger(__name__)`` (``gigflow.marketplace`` and friends) and the
API uses ``get_logger("gigflow.api.<area>")``, so one handler covers both.
"""

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
ROOT_LOGGER = "gigflow"

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def setup_logging(level: str = "INFO", debug: bool = False) -> logging.Logger:
    """Configure the ``gigflow`` logger once. Safe to call repeatedly.

    ``level`` is case-insensitive; an unknown name falls back to INFO.
    ``debug`` forces DEBUG regardless of ``level``.
    """
    name = (level or "INFO").upper()
    if name not in _VALID_LEVELS:
        name = "INFO"
    if debug:
        name = "DEBUG"

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, name))

    if not any(getattr(h, "_gigflow_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._gigflow_handler = True
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger in the gigflow tree."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def log_auth_event(event: str, account: str, success: bool, reason: str | None = None) -> None:
    """Audit line for register/login/logout/socket-join attempts."""
    logger = get_logger("gigflow.api.audit")
    outcome = "ok" if success else "failed"
    message = f"Auth {event} {outcome} | account={account}"
    if reason:
        message += f" | reason={reason}"
    if success:
        logger.info(message)
    else:
        logger.warning(message)
