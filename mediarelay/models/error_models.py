"""
Error models for Media Relay Service.
Defines the exception hierarchy and error response structures.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorSeverity(str, Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Error categories."""

    PROTOCOL = "protocol"
    DELIVERY = "delivery"
    DECODE = "decode"
    SYSTEM = "system"


class ErrorCodes:
    """Standard error codes."""

    # Protocol errors (1000-1999)
    MALFORMED_MESSAGE = "1001"
    ROOM_NOT_FOUND = "1003"
    ROOM_KEY_EXHAUSTED = "1004"

    # Delivery errors (2000-2999)
    SEND_FAILED = "2001"
    SEND_TIMEOUT = "2002"

    # Decode errors (3000-3999)
    INVALID_BASE64 = "3001"


class RelayError(Exception):
    """Base class for every error raised by the relay"""

    category: ErrorCategory = ErrorCategory.SYSTEM
    error_code: str = ""

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details


class SignalDecodeError(RelayError):
    """A frame is not a well-formed signal message for its operation"""

    category = ErrorCategory.PROTOCOL
    error_code = ErrorCodes.MALFORMED_MESSAGE


class RoomNotFoundError(RelayError):
    """An operation referenced a room key that is not live"""

    category = ErrorCategory.PROTOCOL
    error_code = ErrorCodes.ROOM_NOT_FOUND

    def __init__(self, room_key: str, operation: Optional[str] = None):
        super().__init__(f"Room {room_key} doesn't exists.", room_key=room_key, operation=operation)
        self.room_key = room_key
        self.operation = operation


class RoomKeyExhaustedError(RelayError):
    """No free room key was found within the configured number of draws"""

    category = ErrorCategory.PROTOCOL
    error_code = ErrorCodes.ROOM_KEY_EXHAUSTED


class ChunkDecodeError(RelayError):
    """Fragment payload is not valid Base64"""

    category = ErrorCategory.DECODE
    error_code = ErrorCodes.INVALID_BASE64


class DeliveryError(RelayError):
    """Sending to one peer failed"""

    category = ErrorCategory.DELIVERY
    error_code = ErrorCodes.SEND_FAILED


class RoomJoinError(RelayError):
    """The relay refused a JoinRoom request"""

    category = ErrorCategory.PROTOCOL
    error_code = ErrorCodes.ROOM_NOT_FOUND


class ErrorReport(BaseModel):
    """Serializable description of a handled error."""

    error_code: str = Field(..., description="Specific error code")
    error_message: str = Field(..., description="Human-readable error message")
    error_category: ErrorCategory = Field(..., description="Error category")
    severity: ErrorSeverity = Field(..., description="Error severity level")
    connection_id: Optional[str] = Field(default=None, description="Affected connection")
    room_key: Optional[str] = Field(default=None, description="Related room key")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error occurrence time")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error details")
