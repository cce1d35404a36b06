"""Logging setup shared by the LoreSearch entry points."""
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_LOG_FILE = "loresearch.log"
# Chatty at INFO; capped at WARNING unless LoreSearch itself logs more verbosely.
NOISY_LOGGERS = ("chromadb", "httpx", "sentence_transformers", "mcp.server.lowlevel.server")


def setup_logging(root: logging.Logger | None = None) -> None:
    """Configure ``root`` (the root logger by default) once.

    Records always go to stderr, since stdout carries the MCP protocol. They
    also go to ``LORESEARCH_LOG_FILE`` unless that variable is set to an empty
    string. ``LORESEARCH_LOG_LEVEL`` picks the level (default ``INFO``).
    """
    root_logger = root if root is not None else logging.getLogger()
    if root_logger.handlers:
        return

    level_name = os.getenv("LORESEARCH_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    log_file = os.getenv("LORESEARCH_LOG_FILE", DEFAULT_LOG_FILE)
    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    root_logger.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


__all__ = ["setup_logging"]
