"""
MediaDrop: token-addressed photo/video drop albums

Anonymous and authenticated contributors upload media into shared albums.
Files are classified, de-duplicated, stored per contributor and optionally
organized into a category tree.
"""

__version__ = "0.1.0"
__author__ = "MediaDrop Team"

# Core imports for easy access
from .config import load_config
from .errors import MediaDropError

__all__ = [
    "load_config",
    "MediaDropError",
]
