"""
Logging configuration for spot-audit.

This module sets up the logging system with multiple outputs:
    - Console: Real-time progress with tqdm-compatible formatting
    - log_full.log: Complete log of all events (DEBUG and above)
    - log_errors.log: Only ERROR and CRITICAL level messages
    - sync_failures.log: Tracks that could not be added to Liked Songs
    - removal_plan.log: Dead duplicates planned (or applied) for removal

The logging system follows the principle: everything to screen is also saved
to file, then filtered into specialized files.

Log File Locations:
    All log files are created in the log directory from config.yaml,
    one set per run (timestamped, no rotation).

Usage:
    from spot_audit.core.logger import setup_logging, get_logger

    setup_logging(log_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Starting audit")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log file name prefixes (created in the log directory)
LOG_FULL_PREFIX = "log_full"
LOG_ERRORS_PREFIX = "log_errors"
SYNC_FAILURES_PREFIX = "sync_failures"
REMOVAL_PLAN_PREFIX = "removal_plan"

# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that colors the level name for console output.

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
        return f"{color}{record.levelname}{Colors.RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking tqdm progress bars.

    Uses tqdm.write(), which coordinates with any active progress bar so
    messages appear above it instead of corrupting it.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class ReportFileHandler(logging.Handler):
    """
    Base handler for the specialized report files.

    Subclasses declare the extra attribute that marks a record as theirs
    (MARKER) and render the record in format_entry(). Records without the
    marker are ignored.

    Attributes:
        report_path: Path to the report file.
        report_file: Open file handle, None until open() is called.
    """

    MARKER = ""

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def format_entry(self, record: logging.LogRecord) -> str:
        raise NotImplementedError

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, self.MARKER):
            return

        if self.report_file is None:
            return

        try:
            self.acquire()
            try:
                self.report_file.write(self.format_entry(record))
                self.report_file.flush()
            finally:
                self.release()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """
        Close the report file handle.

        Called automatically when logging is shut down.
        Safe to call multiple times.
        """
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class SyncFailureHandler(ReportFileHandler):
    """
    Captures sync failures for the sync_failures report file.

    Output format:

        Song Title - Artist Name
        https://open.spotify.com/track/xxxxx
        Reason: Rate limited (after 3 attempts)

    The handler looks for these extra fields in log records:
        - 'sync_failed_track_name'
        - 'sync_failed_track_artist'
        - 'sync_failed_track_url'
        - 'sync_failed_reason'
    """

    MARKER = "sync_failed_track_name"

    def format_entry(self, record: logging.LogRecord) -> str:
        name = getattr(record, "sync_failed_track_name", "Unknown")
        artist = getattr(record, "sync_failed_track_artist", "Unknown")
        url = getattr(record, "sync_failed_track_url", "")
        reason = getattr(record, "sync_failed_reason", "")
        return f"{name} - {artist}\n{url}\nReason: {reason}\n\n"


class RemovalPlanHandler(ReportFileHandler):
    """
    Captures planned removals of dead duplicates for later review.

    Output format:

        ISRC GBUM71029604
        Remove: Song Title - Artist Name (spotify:dead_id)
        Keep:   live_id
    """

    MARKER = "removal_dead_track_id"

    def format_entry(self, record: logging.LogRecord) -> str:
        isrc = getattr(record, "removal_isrc", "")
        dead_id = getattr(record, "removal_dead_track_id", "")
        name = getattr(record, "removal_dead_track_name", "Unknown")
        artist = getattr(record, "removal_dead_track_artist", "Unknown")
        live_id = getattr(record, "removal_live_track_id", "")
        return (
            f"ISRC {isrc}\n"
            f"Remove: {name} - {artist} ({dead_id})\n"
            f"Keep:   {live_id}\n\n"
        )


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, console_level: int = logging.INFO) -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any catalog call.

    Args:
        log_dir: Directory where log files will be created.
                 Created if it doesn't exist.
        console_level: Minimum level shown on the console. Default INFO.

    Behavior:
        1. Create log_dir if it doesn't exist
        2. Generate timestamp for this run's log files
        3. Configure root logger level to DEBUG, dropping existing handlers
        4. Attach console handler (TqdmLoggingHandler, colored)
        5. Attach full log and error-only log file handlers
        6. Attach sync failure and removal plan report handlers

    Thread Safety:
        This function is NOT thread-safe. Call it from the main thread
        before any pipeline worker threads are started.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_handler = logging.FileHandler(
        log_dir / f"{LOG_FULL_PREFIX}_{timestamp}.log", mode="w", encoding="utf-8"
    )
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(
        log_dir / f"{LOG_ERRORS_PREFIX}_{timestamp}.log", mode="w", encoding="utf-8"
    )
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    sync_handler = SyncFailureHandler(log_dir / f"{SYNC_FAILURES_PREFIX}_{timestamp}.log")
    sync_handler.open()
    root_logger.addHandler(sync_handler)

    removal_handler = RemovalPlanHandler(log_dir / f"{REMOVAL_PLAN_PREFIX}_{timestamp}.log")
    removal_handler.open()
    root_logger.addHandler(removal_handler)

    # spotipy and urllib3 are chatty at DEBUG
    logging.getLogger("spotipy").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger: A logger instance configured by setup_logging().

    Note:
        Loggers obtained before setup_logging() is called will have no
        handlers and will not produce output.
    """
    return logging.getLogger(name)


def log_sync_failure(
    logger: logging.Logger,
    track_name: str,
    artist: str,
    spotify_url: str,
    reason: str
) -> None:
    """
    Log a track that could not be added to Liked Songs.

    Logs an ERROR and attaches the extra fields SyncFailureHandler
    writes to sync_failures.log.
    """
    logger.error(
        f"Sync failed: {artist} - {track_name} ({reason})",
        extra={
            "sync_failed_track_name": track_name,
            "sync_failed_track_artist": artist,
            "sync_failed_track_url": spotify_url,
            "sync_failed_reason": reason,
        }
    )


def log_removal_candidate(
    logger: logging.Logger,
    isrc: str,
    dead_track_id: str,
    dead_track_name: str,
    dead_track_artist: str,
    live_track_id: str
) -> None:
    """
    Log a dead duplicate that has a live sibling with the same ISRC.

    Logs an INFO message and attaches the extra fields RemovalPlanHandler
    writes to removal_plan.log.
    """
    logger.info(
        f"Dead duplicate: {dead_track_artist} - {dead_track_name} "
        f"({dead_track_id}) -> keep {live_track_id}",
        extra={
            "removal_isrc": isrc,
            "removal_dead_track_id": dead_track_id,
            "removal_dead_track_name": dead_track_name,
            "removal_dead_track_artist": dead_track_artist,
            "removal_live_track_id": live_track_id,
        }
    )


def shutdown_logging() -> None:
    """
    Flush, close and detach all root handlers.

    Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)
