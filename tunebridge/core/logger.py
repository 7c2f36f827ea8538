"""
Logging configuration for tunebridge.

This module sets up the logging system with multiple outputs:
    - Console: Real-time progress with tqdm-compatible, colored formatting
    - log_full_<ts>.log: Complete log of all events (DEBUG and above)
    - log_errors_<ts>.log: Only ERROR and CRITICAL level messages
    - conversion_failures_<ts>.log: Tracks that could not be matched to a video

Everything shown on screen is also saved to file, then filtered into
specialized files.

Log File Locations:
    All log files are created in <data_dir>/logs. Each run gets its own
    timestamped files.

Usage:
    from tunebridge.core.logger import setup_logging, get_logger

    setup_logging(data_dir)          # Call once at startup
    logger = get_logger(__name__)    # Get logger for each module

    logger.info("Starting conversion")
    log_conversion_failure(logger, track_id, track_name, "No results")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


LOG_FULL_FILENAME = "log_full"
LOG_ERRORS_FILENAME = "log_errors"
CONVERSION_FAILURES_FILENAME = "conversion_failures"

# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that prefixes each console line with a colored level name.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking progress bars.

    Progress bars redraw in place using carriage returns. Plain writes to
    stderr interleave with them and leave visual garbage; tqdm.write()
    prints the message above any active bar instead.

    Example:
        handler = TqdmLoggingHandler()
        handler.setFormatter(ColoredConsoleFormatter())
        logger.addHandler(handler)
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            # Resolved per call so redirected stderr (tests, CliRunner) is honored
            tqdm.write(msg, file=self.stream or sys.stderr)
        except Exception:
            self.handleError(record)


class ConversionFailureHandler(logging.Handler):
    """
    Handler that collects failed conversions into a plain report file.

    Listens for log records carrying the extra fields set by
    log_conversion_failure() and writes them in a human-readable format:

        Song Title [4cOdK2wGLETKBW3PvgPWqT]
        reason: No YouTube videos found for query: Song Title Artist

    Records without 'conversion_failed_track_id' are ignored, so the
    handler can sit on the root logger next to the regular handlers.

    Attributes:
        report_path: Path to the conversion_failures log.
        report_file: Open file handle, or None before open()/after close().
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "conversion_failed_track_id"):
            return

        if self.report_file is None:
            return

        try:
            track_id = getattr(record, "conversion_failed_track_id")
            track_name = getattr(record, "conversion_failed_track_name", "Unknown")
            reason = getattr(record, "conversion_failed_reason", "")

            self.acquire()
            try:
                self.report_file.write(f"{track_name} [{track_id}]\n")
                self.report_file.write(f"reason: {reason}\n\n")
                self.report_file.flush()
            finally:
                self.release()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """
    Filter that only allows ERROR and CRITICAL level records.

    Used by the error log file handler to exclude DEBUG, INFO, and WARNING.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(data_dir: Path, verbose: bool = False) -> Path:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        data_dir: Directory under which a 'logs' subdirectory is created.
        verbose: Show DEBUG messages on the console as well.

    Returns:
        The logs directory used for this run.

    Behavior:
        1. Create data_dir/logs if it doesn't exist
        2. Configure root logger level to DEBUG, dropping previous handlers
        3. Console handler (TqdmLoggingHandler): INFO, or DEBUG if verbose
        4. Full log file handler: DEBUG, full format
        5. Error log file handler: ERROR+ through ErrorOnlyFilter
        6. Conversion failure report handler

    Thread Safety:
        This function is NOT thread-safe. Call it once from the main
        thread before starting any worker threads.
    """
    logs_dir = data_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    file_formatter = logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT)

    full_handler = logging.FileHandler(
        logs_dir / f"{LOG_FULL_FILENAME}_{timestamp}.log", mode="w", encoding="utf-8"
    )
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(file_formatter)
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(
        logs_dir / f"{LOG_ERRORS_FILENAME}_{timestamp}.log", mode="w", encoding="utf-8"
    )
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(file_formatter)
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    failures_handler = ConversionFailureHandler(
        logs_dir / f"{CONVERSION_FAILURES_FILENAME}_{timestamp}.log"
    )
    failures_handler.open()
    root_logger.addHandler(failures_handler)

    # Chatty third-party loggers stay at WARNING on every output
    for noisy in ("urllib3", "spotipy"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logs_dir


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.
              This creates a hierarchy like 'tunebridge.youtube.converter'.

    Note:
        Loggers obtained before setup_logging() is called propagate to an
        unconfigured root logger. Always call setup_logging() first during
        application startup.
    """
    return logging.getLogger(name)


def format_converted_message(name: str, url: str) -> str:
    return (
        f"{Colors.GREEN}Converted{Colors.RESET}: "
        f"{name} -> "
        f"{Colors.CYAN}{url}{Colors.RESET}"
    )


def format_failed_message(name: str, reason: str) -> str:
    return (
        f"{Colors.RED}Failed{Colors.RESET}: "
        f"{name} "
        f"({reason})"
    )


def log_conversion_failure(
    logger: logging.Logger,
    track_id: str,
    track_name: str,
    reason: str
) -> None:
    """
    Log a track whose conversion failed.

    Logs a WARNING with the reason and attaches the extra fields that
    ConversionFailureHandler uses to write the failure report.

    Example:
        log_conversion_failure(
            logger,
            track_id="4cOdK2wGLETKBW3PvgPWqT",
            track_name="Song Title",
            reason="No YouTube videos found for query: Song Title Artist"
        )
    """
    logger.warning(
        f"Conversion failed for {track_name} ({track_id}): {reason}",
        extra={
            "conversion_failed_track_id": track_id,
            "conversion_failed_track_name": track_name,
            "conversion_failed_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Flush, close and detach every handler on the root logger.

    Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except (OSError, ValueError):
            pass
        root_logger.removeHandler(handler)
