"""Test logging setup and helpers"""

import logging

import pytest

from tunebridge.core.logger import (
    ErrorOnlyFilter,
    format_failed_message,
    get_logger,
    log_conversion_failure,
    setup_logging,
    shutdown_logging,
)


@pytest.fixture
def logs_dir(temp_dir):
    logs = setup_logging(temp_dir)
    yield logs
    shutdown_logging()


class TestLogging:
    """Test log file outputs"""

    def test_creates_log_files(self, logs_dir):
        """One full, one error and one failure report file per run"""
        assert len(list(logs_dir.glob("log_full_*.log"))) == 1
        assert len(list(logs_dir.glob("log_errors_*.log"))) == 1
        assert len(list(logs_dir.glob("conversion_failures_*.log"))) == 1

    def test_failure_report(self, logs_dir):
        """Conversion failures are written to the report file"""
        logger = get_logger("tunebridge.test")
        log_conversion_failure(logger, "t1", "Song Title", "No YouTube videos found for query: x")
        logger.warning("regular warning")
        shutdown_logging()

        report = next(logs_dir.glob("conversion_failures_*.log")).read_text(encoding="utf-8")
        assert report == "Song Title [t1]\nreason: No YouTube videos found for query: x\n\n"

    def test_error_file_only_has_errors(self, logs_dir):
        logger = get_logger("tunebridge.test")
        logger.info("just info")
        logger.error("real problem")
        shutdown_logging()

        errors = next(logs_dir.glob("log_errors_*.log")).read_text(encoding="utf-8")
        full = next(logs_dir.glob("log_full_*.log")).read_text(encoding="utf-8")
        assert "real problem" in errors
        assert "just info" not in errors
        assert "just info" in full

    def test_error_only_filter(self):
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "msg", None, None)
        assert ErrorOnlyFilter().filter(record) is False
        record.levelno = logging.CRITICAL
        assert ErrorOnlyFilter().filter(record) is True

    def test_failed_message_contains_reason(self):
        assert "(timeout)" in format_failed_message("Song", "timeout")
