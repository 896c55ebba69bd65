"""
Filename and directory name normalization.
"""

import re
from pathlib import PurePosixPath

_UNSAFE_CHARS = re.compile(r'[^a-z0-9_.\-]')

# Longest single path component common filesystems accept
MAX_NAME_LENGTH = 255


def normalize_label(name: str) -> str:
    """
    Turn a free-form label into a safe directory name.

    Lower-cases and replaces every character outside ``[a-z0-9_.-]`` with
    an underscore, whitespace included. Names made only of dots are
    rewritten so they can never address a parent directory.
    """
    sanitized = _UNSAFE_CHARS.sub('_', name.lower())[:MAX_NAME_LENGTH]
    if sanitized and set(sanitized) == {'.'}:
        sanitized = '_' * len(sanitized)
    return sanitized


def safe_basename(filename: str) -> str:
    """Reduce a client supplied filename to its final path component."""
    return PurePosixPath(filename.replace('\\', '/')).name
