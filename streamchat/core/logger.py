import logging

_level = logging.INFO


def configure_logging(level: str | int) -> None:
    """Set the level used by loggers created (and already created) through get_logger."""
    global _level
    _level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(_level, int):
        _level = logging.INFO
    for name in list(logging.root.manager.loggerDict):
        logger = logging.getLogger(name)
        if getattr(logger, "_streamchat", False):
            logger.setLevel(_level)


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
        logger.setLevel(_level)
        logger._streamchat = True
    return logger
