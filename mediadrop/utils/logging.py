"""
Logging utilities for MediaDrop
Provides structured logging and per-submission statistics
"""

import logging
import sys
import time
from typing import Optional, Dict, Any, List
from pathlib import Path
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

    def bind(self, **kwargs) -> 'StructuredLogger':
        """Return a logger that adds ``kwargs`` to every message"""
        return StructuredLogger(self.logger.name, {**self.metadata, **kwargs})

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

    def exception(self, message: str, **kwargs):
        """Log error message with metadata and the active traceback"""
        self.logger.exception(self._format_message(message, **kwargs))


class BatchStats:
    """Tracks the outcome of one upload submission"""

    def __init__(self, total_files: int = 0):
        self.start_time = time.monotonic()
        self.total_files = total_files
        self.stored_files = 0
        self.duplicate_files = 0
        self.failed_files = 0
        self.bytes_stored = 0
        self.failure_reasons: Dict[str, int] = {}
        self.errors: List[Dict[str, str]] = []

    def add_stored(self, size: int):
        self.stored_files += 1
        self.bytes_stored += size

    def add_duplicate(self):
        self.duplicate_files += 1

    def add_failure(self, filename: str, reason: str, message: str):
        """
        Record a failed file

        Args:
            filename: Client filename
            reason: Error code used for grouping
            message: Human readable error
        """
        self.failed_files += 1
        self.failure_reasons[reason] = self.failure_reasons.get(reason, 0) + 1
        self.errors.append({'file': filename, 'error': message})

    @property
    def processed_files(self) -> int:
        return self.stored_files + self.duplicate_files + self.failed_files

    def get_elapsed_time(self) -> float:
        """Get elapsed time in seconds"""
        return time.monotonic() - self.start_time

    def get_summary(self) -> Dict[str, Any]:
        """Get submission summary"""
        return {
            'total_files': self.total_files,
            'processed_files': self.processed_files,
            'stored_files': self.stored_files,
            'duplicate_files': self.duplicate_files,
            'failed_files': self.failed_files,
            'bytes_stored': self.bytes_stored,
            'failure_reasons': self.failure_reasons,
            'elapsed_time': round(self.get_elapsed_time(), 3),
        }


def setup_console_logging(level: str = "INFO", color: bool = True):
    """
    Setup console logging with optional color support

    Args:
        level: Logging level
        color: Whether to use colored output
    """
    console_handler = logging.StreamHandler(sys.stdout)

    if color and sys.stdout.isatty():
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
        formatter = logging.Formatter(DEFAULT_FORMAT)

    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(console_handler)


def setup_logging(config: Dict[str, Any], color: bool = True):
    """
    Configure logging from the ``logging`` config section

    Adds a file handler when ``logging.file`` is set.
    """
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')
    setup_console_logging(level, color=color)

    log_file = log_config.get('file')
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(log_config.get('format', DEFAULT_FORMAT)))
        logging.getLogger().addHandler(file_handler)
        logger.info(f"Logging to file: {log_file}")
