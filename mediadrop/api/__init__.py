"""
MediaDrop API Layer

Provides the token-addressed upload API.
"""

from .app import create_app
from .models import APIResponse, ErrorResponse
from .auth import APIAuth, UserSession

__all__ = [
    'create_app',
    'APIResponse',
    'ErrorResponse',
    'APIAuth',
    'UserSession',
]
