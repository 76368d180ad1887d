"""
Centralized error handling
"""
import asyncio
import logging
import time
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from mediarelay.models.error_models import (
    ErrorCategory,
    ErrorCodes,
    ErrorReport,
    ErrorSeverity,
    RelayError,
    SignalDecodeError,
)


@dataclass
class ErrorContext:
    """Error context information"""
    service_name: str
    operation_name: str
    connection_id: Optional[str] = None
    room_key: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    stack_trace: str = ""
    additional_data: Dict[str, Any] = field(default_factory=dict)


class StructuredLogger:
    """Structured error logging system"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.error_counts: Dict[str, int] = {}
        self.start_time = time.time()

    def log_error(self, error: Exception, context: ErrorContext,
                  category: ErrorCategory, severity: ErrorSeverity):
        """Log error with structured context"""
        error_key = f"{category.value}_{type(error).__name__}"
        self.error_counts[error_key] = self.error_counts.get(error_key, 0) + 1

        log_data = {
            "service": context.service_name,
            "operation": context.operation_name,
            "error_type": type(error).__name__,
            "error_message": str(error),
            "category": category.value,
            "severity": severity.value,
            "connection_id": context.connection_id,
            "room_key": context.room_key,
            "timestamp": context.timestamp.isoformat(),
            "error_count": self.error_counts[error_key],
        }

        if severity in [ErrorSeverity.HIGH, ErrorSeverity.CRITICAL]:
            log_data["stack_trace"] = context.stack_trace
            self.logger.error(f"🚨 {severity.value.upper()} ERROR: {log_data}")
        elif severity == ErrorSeverity.MEDIUM:
            self.logger.warning(f"⚠️ {severity.value.upper()} ERROR: {log_data}")
        else:
            self.logger.debug(f"ℹ️ {severity.value.upper()} ERROR: {log_data}")

    def get_error_statistics(self) -> Dict[str, Any]:
        """Get error statistics"""
        uptime = time.time() - self.start_time
        total_errors = sum(self.error_counts.values())

        return {
            "total_errors": total_errors,
            "error_rate": total_errors / max(1, uptime / 3600),  # Errors per hour
            "error_breakdown": dict(self.error_counts),
            "uptime_hours": uptime / 3600
        }


class GlobalErrorHandler:
    """Centralized error classification and logging"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.error_logger = StructuredLogger()

    def handle_error(self, error: Exception, context: ErrorContext) -> ErrorReport:
        """Classify, log and count an error; return its report"""
        category = self._classify_error(error)
        severity = self._determine_severity(error, category)

        if severity in [ErrorSeverity.HIGH, ErrorSeverity.CRITICAL]:
            context.stack_trace = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        self.error_logger.log_error(error, context, category, severity)

        details = dict(context.additional_data)
        if isinstance(error, RelayError):
            details.update(error.details)

        return ErrorReport(
            error_code=self._error_code(error, category),
            error_message=str(error),
            error_category=category,
            severity=severity,
            connection_id=context.connection_id,
            room_key=context.room_key,
            details=details or None,
        )

    def get_error_statistics(self) -> Dict[str, Any]:
        """Get comprehensive error statistics"""
        return self.error_logger.get_error_statistics()

    def _classify_error(self, error: Exception) -> ErrorCategory:
        """Classify error into appropriate category"""
        if isinstance(error, RelayError):
            return error.category
        if isinstance(error, (asyncio.TimeoutError, ConnectionError, OSError)):
            return ErrorCategory.DELIVERY
        if isinstance(error, (ValueError, KeyError, TypeError)):
            return ErrorCategory.PROTOCOL
        return ErrorCategory.SYSTEM

    def _determine_severity(self, error: Exception, category: ErrorCategory) -> ErrorSeverity:
        """Determine error severity based on category"""
        if category == ErrorCategory.SYSTEM:
            return ErrorSeverity.HIGH
        if isinstance(error, SignalDecodeError):
            return ErrorSeverity.MEDIUM
        if category in [ErrorCategory.DELIVERY, ErrorCategory.DECODE]:
            return ErrorSeverity.MEDIUM
        return ErrorSeverity.LOW

    def _error_code(self, error: Exception, category: ErrorCategory) -> str:
        if isinstance(error, RelayError) and error.error_code:
            return error.error_code
        if isinstance(error, asyncio.TimeoutError):
            return ErrorCodes.SEND_TIMEOUT
        if category == ErrorCategory.DELIVERY:
            return ErrorCodes.SEND_FAILED
        return f"{category.value}_{type(error).__name__}"
