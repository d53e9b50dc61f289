"""
Structured logging system for bqsync.

Provides centralized logging with console and file outputs, log levels,
and metrics tracking for summarizing a sync run.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for the delete and write phases of a sync run.
    """

    def __init__(
        self,
        name: str = "bqsync",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()  # Remove existing handlers

        self.metrics = {
            "delete_batches": 0,
            "documents_deleted": 0,
            "rows_fetched": 0,
            "write_chunks": 0,
            "documents_written": 0,
            "write_retries": 0,
            "write_failures": 0,
            "errors_by_type": {},
        }
        self._metrics_lock = threading.RLock()

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"bqsync_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_delete_batch(self, size: int):
        """Record a committed delete batch of `size` documents."""
        with self._metrics_lock:
            self.metrics["delete_batches"] += 1
            self.metrics["documents_deleted"] += size

    def record_rows_fetched(self, count: int):
        with self._metrics_lock:
            self.metrics["rows_fetched"] += count

    def record_write_chunk(self, size: int):
        """Record a closed bulk-write session of `size` documents."""
        with self._metrics_lock:
            self.metrics["write_chunks"] += 1
            self.metrics["documents_written"] += size

    def record_write_retry(self):
        # BulkWriter error callbacks run on its worker threads
        with self._metrics_lock:
            self.metrics["write_retries"] += 1

    def record_write_failure(self, error_type: str):
        """Record a write the retry policy gave up on."""
        with self._metrics_lock:
            self.metrics["write_failures"] += 1
            self.record_error(error_type)

    def record_error(self, error_type: str):
        with self._metrics_lock:
            if error_type not in self.metrics["errors_by_type"]:
                self.metrics["errors_by_type"][error_type] = 0
            self.metrics["errors_by_type"][error_type] += 1

    def get_metrics(self) -> dict:
        """Return a copy of the current metrics."""
        with self._metrics_lock:
            metrics_copy = self.metrics.copy()
            metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Sync Run Metrics ===")
        self.info(
            f"Deleted: {metrics['documents_deleted']} docs "
            f"in {metrics['delete_batches']} batches"
        )
        self.info(f"Fetched: {metrics['rows_fetched']} rows")
        self.info(
            f"Written: {metrics['documents_written']} docs "
            f"in {metrics['write_chunks']} chunks "
            f"({metrics['write_retries']} retries, {metrics['write_failures']} failures)"
        )

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "bqsync",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
