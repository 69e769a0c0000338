from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER = "fishledger"


def configure(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(ROOT_LOGGER)
    if not logger.handlers:
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(ch)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    return logger


def get_logger(name: str = "") -> logging.Logger:
    # Children propagate to the "fishledger" logger, which owns the handler.
    configure_once()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def configure_once() -> None:
    if not logging.getLogger(ROOT_LOGGER).handlers:
        configure()
