import logging

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "NONE": logging.CRITICAL + 10,
}

_current_level = logging.DEBUG
_loggers: dict[str, logging.Logger] = {}


def get_logger(name: str) -> logging.Logger:
    """Simple logger factory."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(_current_level)
    _loggers[name] = logger
    return logger


def set_log_level(level: str | int) -> int:
    """Apply a level to every logger handed out so far and to later ones.

    Accepts a numeric level or one of DEBUG/INFO/WARN(ING)/ERROR/NONE.
    Unknown names fall back to DEBUG.
    """
    global _current_level
    if isinstance(level, str):
        resolved = _LEVELS.get(level.strip().upper(), logging.DEBUG)
    else:
        resolved = level
    _current_level = resolved
    for logger in _loggers.values():
        logger.setLevel(resolved)
    return resolved


# Example: logger = get_logger(__name__)
