import logging

from authsources.utils.config import config

# Chatty client libraries used by the backend adapters
_QUIET_LOGGERS = ("ldap3", "httpx", "httpcore", "peewee")


def setup_logging(level=None):
    """Configure root logging from AUTHSOURCES_LOG_LEVEL (or `level`)."""
    log_level = getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Library debug output would leak bind DNs and request URLs
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    logger = logging.getLogger("authsources")
    logger.setLevel(log_level)
    return logger
