"""
@file logging.py
@brief Centralized logging configuration
@details
Configures application logging with support for file and stdout output.
Log level comes from LOG_LEVEL, destinations from LOG_OUTPUT.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

import logging
import sys
import os


def _resolve_log_dir():
    log_dir = os.getenv("LOG_DIR", None)
    if log_dir is None:
        # this file is in catchstat/core/, so back 3 levels is the project root
        base_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
        log_dir = os.path.join(base_dir, "logs")
    try:
        os.makedirs(log_dir, exist_ok=True)
    except (OSError, PermissionError):
        return None
    if not os.access(log_dir, os.W_OK):
        return None
    return log_dir


def setup_logging() -> logging.Logger:
    """
    @brief Configure and return the application logger
    @details
    Sets up logging based on LOG_OUTPUT env var:
    - 'file': Write to logs/app.log
    - 'stdout': Write to console
    - 'both': Write to both (default)
    """
    log_output = os.getenv("LOG_OUTPUT", "both").lower()
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handlers = []

    if log_output in ("stdout", "both"):
        handlers.append(logging.StreamHandler(sys.stdout))

    if log_output in ("file", "both"):
        log_dir = _resolve_log_dir()
        if log_dir:
            try:
                handlers.append(logging.FileHandler(os.path.join(log_dir, "app.log")))
            except (OSError, PermissionError):
                pass

    # Safety net
    if not handlers:
        handlers.append(logging.StreamHandler(sys.stdout))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers
    )

    return logging.getLogger("catchstat")
