"""Logging setup for the console.

All loggers live under the ``apiconsole`` namespace so the host application
can tune them independently of its own loggers.
"""
from __future__ import annotations

import logging

ROOT_LOGGER = "apiconsole"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stream handler to the ``apiconsole`` logger.

    Safe to call repeatedly (e.g. once per application factory call in tests);
    only the level is updated after the first call.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(getattr(h, "_apiconsole", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._apiconsole = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    # Quiet per-request httpx lines from forwarded test invocations.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logger


def mask_token(token: str | None) -> str:
    if not token:
        return "-"
    return f"{token[:4]}…" if len(token) > 8 else "…"


__all__ = ["get_logger", "configure_logging", "mask_token", "ROOT_LOGGER"]
