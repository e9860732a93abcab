"""Rotating file loggers shared by the client and the server."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from core.settings import LOGGING


SYNC_LOG_NAME = "sync.log"
SERVER_LOG_NAME = "server.log"


def get_logger(name: str, filename: Optional[str] = None) -> logging.Logger:
    """Return ``name`` logger, attaching a rotating file handler on first use."""

    logger = logging.getLogger(name)
    if filename and not logger.handlers:
        path = LOGGING.directory / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            path,
            maxBytes=LOGGING.max_bytes,
            backupCount=LOGGING.backup_count,
            encoding="utf-8",
        )
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(LOGGING.level)
    return logger


__all__ = ["SERVER_LOG_NAME", "SYNC_LOG_NAME", "get_logger"]
