"""
MediaDrop utilities module.

Provides logging helpers and filename normalization.
"""

from .logging import StructuredLogger, BatchStats, setup_console_logging, setup_logging
from .naming import normalize_label, safe_basename

__all__ = [
    'StructuredLogger',
    'BatchStats',
    'setup_console_logging',
    'setup_logging',
    'normalize_label',
    'safe_basename',
]
