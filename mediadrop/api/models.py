"""
API Data Models and Schemas

Defines response envelopes for the MediaDrop API.
"""

from typing import Dict, Optional, Any
from datetime import datetime, timezone
from dataclasses import dataclass, field
from enum import Enum


class APIStatus(Enum):
    """API response status codes."""
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class APIResponse:
    """Standard API response wrapper."""
    status: APIStatus = APIStatus.SUCCESS
    data: Optional[Any] = None
    message: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'status': self.status.value,
            'data': self.data,
            'message': self.message,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass
class ErrorResponse(APIResponse):
    """Error response with additional context."""
    error_code: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        self.status = APIStatus.ERROR

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update({
            # Upload clients read the plain message from 'error'
            'error': self.message,
            'error_code': self.error_code,
            'error_details': self.error_details,
        })
        return result
