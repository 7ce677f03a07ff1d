"""
Logging utilities for rawdesk
Provides structured logging and batch progress tracking
"""

import logging
import sys
import threading
from typing import Optional, Dict, Any, List
from datetime import datetime
import json

import colorlog

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class StructuredLogger:
    """Provides structured logging with metadata"""

    def __init__(self, name: str, metadata: Optional[Dict[str, Any]] = None):
        """
        Initialize structured logger

        Args:
            name: Logger name
            metadata: Default metadata to include in all logs
        """
        self.logger = logging.getLogger(name)
        self.metadata = metadata or {}

    def _format_message(self, message: str, **kwargs) -> str:
        """Format message with metadata"""
        data = {**self.metadata, **kwargs}
        if data:
            return f"{message} | {json.dumps(data, default=str)}"
        return message

    def debug(self, message: str, **kwargs):
        self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs):
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs):
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs):
        self.logger.error(self._format_message(message, **kwargs))


class BatchStats:
    """Tracks batch export statistics. Safe to update from worker threads."""

    def __init__(self, total: int = 0):
        self.start_time = datetime.now()
        self.total_files = total
        self.processed_files = 0
        self.succeeded_files = 0
        self.failed_files = 0
        self.errors: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def add_result(self, file_path: str, succeeded: bool, error: Optional[str] = None):
        """
        Record one finished item

        Args:
            file_path: Photo the outcome belongs to
            succeeded: Whether the item succeeded
            error: Failure reason if applicable
        """
        with self._lock:
            self.processed_files += 1
            if succeeded:
                self.succeeded_files += 1
            else:
                self.failed_files += 1
                self.errors.append({
                    'file': file_path,
                    'error': error or 'unknown error',
                    'time': datetime.now()
                })

    def get_elapsed_time(self) -> float:
        return (datetime.now() - self.start_time).total_seconds()

    @property
    def all_succeeded(self) -> bool:
        return self.failed_files == 0 and self.processed_files == self.total_files

    def get_summary(self) -> Dict[str, Any]:
        """Get batch summary"""
        elapsed = self.get_elapsed_time()

        return {
            'total_files': self.total_files,
            'processed_files': self.processed_files,
            'succeeded_files': self.succeeded_files,
            'failed_files': self.failed_files,
            'elapsed_time': elapsed,
            'files_per_second': self.processed_files / elapsed if elapsed > 0 else 0
        }

    def print_summary(self):
        """Print batch summary to console"""
        summary = self.get_summary()

        print("\n" + "="*60)
        print("EXPORT SUMMARY")
        print("="*60)
        print(f"Total photos:     {summary['total_files']}")
        print(f"Processed:        {summary['processed_files']}")
        print(f"Succeeded:        {summary['succeeded_files']}")
        print(f"Failed:           {summary['failed_files']}")
        print(f"Elapsed time:     {summary['elapsed_time']:.1f}s")
        print(f"Processing rate:  {summary['files_per_second']:.2f} photos/s")
        print("="*60)

        if self.errors:
            print("\nERRORS:")
            for error in self.errors[:10]:  # Show first 10 errors
                print(f"  - {error['file']}: {error['error']}")
            if len(self.errors) > 10:
                print(f"  ... and {len(self.errors) - 10} more errors")


def setup_console_logging(level: str = "INFO", color: bool = True,
                          log_file: Optional[str] = None,
                          fmt: str = DEFAULT_FORMAT):
    """
    Setup console logging with optional color support

    Args:
        level: Logging level
        color: Whether to use colored output
        log_file: Optional file that receives the same records
        fmt: Format for the plain (file and non-TTY) handlers
    """
    console_handler = logging.StreamHandler(sys.stderr)

    if color and sys.stderr.isatty():
        formatter = colorlog.ColoredFormatter(
            '%(log_color)s%(asctime)s - %(name)s - %(levelname)s%(reset)s - %(message)s',
            log_colors={
                'DEBUG': 'cyan',
                'INFO': 'green',
                'WARNING': 'yellow',
                'ERROR': 'red',
                'CRITICAL': 'red,bg_white',
            }
        )
    else:
        formatter = logging.Formatter(fmt)

    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(fmt))
        root_logger.addHandler(file_handler)
