"""Logging utilities with structured output for the Kejani client."""

from __future__ import annotations

import logging
import os
from typing import Dict, Mapping, Optional

_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

BODY_PREVIEW_LIMIT = 800


def configure_logging(namespace: str = "kejani") -> logging.Logger:
    """Return a namespaced logger configured for structured output.

    Records are single lines of ``event key=value`` pairs so that they stay
    greppable while still being human readable.
    """

    logger = logging.getLogger(namespace)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.setLevel(_LOG_LEVEL)
    logger.propagate = False
    return logger


def get_logger(child: Optional[str] = None) -> logging.Logger:
    """Helper to retrieve a child logger."""

    base = configure_logging()
    if child:
        return base.getChild(child)
    return base


def mask_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Copy request headers for logging with the bearer token hidden."""

    masked: Dict[str, str] = {}
    for key, value in (headers or {}).items():
        if key.lower() == "authorization":
            masked[key] = "Bearer ***"
        else:
            masked[key] = str(value)
    return masked


def preview_body(body: Optional[str], limit: int = BODY_PREVIEW_LIMIT) -> Optional[str]:
    if body is None:
        return None
    if len(body) > limit:
        return body[:limit] + "...(truncated)"
    return body


__all__ = ["configure_logging", "get_logger", "mask_headers", "preview_body"]
