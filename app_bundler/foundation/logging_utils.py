"""Logging helpers that avoid heavy dependencies."""

from __future__ import annotations

import logging
import os


def setup_build_logger(build_id: str, log_dir: str | None = None) -> tuple[logging.Logger, str | None]:
    """
    Configure a logger for one build invocation.

    INFO and above go to stderr; when `log_dir` is given, a UTF-8 file under it
    receives the full DEBUG log.
    """

    logger = logging.getLogger(f"app_bundler.build.{build_id}")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.INFO)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    log_file: str | None = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"{build_id}_build.log")
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    logger.info("Build logging initialized for %s", build_id)
    if log_file:
        logger.debug("Build log file: %s", log_file)

    return logger, log_file
