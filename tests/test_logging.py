import logging
from pathlib import Path

from app_bundler.foundation.logging_utils import setup_build_logger


def _close(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_build_log_file_is_utf8_and_keeps_debug(tmp_path: Path):
    logger, log_file = setup_build_logger("unit_test_build", str(tmp_path / "logs"))
    try:
        logger.debug("Stage: template-compile → templates")
        logger.info("Wrote 3 file(s) to dist é")
    finally:
        _close(logger)

    assert log_file == str(tmp_path / "logs" / "unit_test_build_build.log")
    with open(log_file, "r", encoding="utf-8") as file:
        content = file.read()

    assert "Build logging initialized for unit_test_build" in content
    assert "DEBUG | Stage: template-compile → templates" in content
    assert "INFO | Wrote 3 file(s) to dist é" in content


def test_without_log_dir_only_stderr_is_configured():
    logger, log_file = setup_build_logger("unit_test_stderr")
    try:
        assert log_file is None
        assert logger.propagate is False
        assert [type(h) for h in logger.handlers] == [logging.StreamHandler]
        assert logger.handlers[0].level == logging.INFO
    finally:
        _close(logger)


def test_setup_is_idempotent_per_build_id(tmp_path: Path):
    first, _ = setup_build_logger("unit_test_again", str(tmp_path))
    second, _ = setup_build_logger("unit_test_again", str(tmp_path))
    try:
        assert first is second
        assert len(second.handlers) == 2
    finally:
        _close(second)
