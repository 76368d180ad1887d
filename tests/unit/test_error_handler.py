"""
Unit Tests for error classification
"""

import asyncio

import pytest

from mediarelay.models.error_models import (
    ChunkDecodeError,
    DeliveryError,
    ErrorCategory,
    ErrorCodes,
    ErrorSeverity,
    RoomNotFoundError,
    SignalDecodeError,
)
from mediarelay.utils.error_handler import ErrorContext, GlobalErrorHandler


@pytest.fixture
def error_handler():
    return GlobalErrorHandler()


def _context(**kwargs):
    return ErrorContext(service_name="test", operation_name="op", **kwargs)


class TestGlobalErrorHandler:
    """Test error classification and reporting"""

    @pytest.mark.parametrize("error,category,severity", [
        (SignalDecodeError("bad frame"), ErrorCategory.PROTOCOL, ErrorSeverity.MEDIUM),
        (RoomNotFoundError("1234"), ErrorCategory.PROTOCOL, ErrorSeverity.LOW),
        (ChunkDecodeError("bad base64"), ErrorCategory.DECODE, ErrorSeverity.MEDIUM),
        (DeliveryError("peer gone"), ErrorCategory.DELIVERY, ErrorSeverity.MEDIUM),
        (asyncio.TimeoutError(), ErrorCategory.DELIVERY, ErrorSeverity.MEDIUM),
        (KeyError("payload"), ErrorCategory.PROTOCOL, ErrorSeverity.LOW),
        (ZeroDivisionError("boom"), ErrorCategory.SYSTEM, ErrorSeverity.HIGH),
    ])
    def test_classification(self, error_handler, error, category, severity):
        report = error_handler.handle_error(error, _context())

        assert report.error_category == category
        assert report.severity == severity

    def test_report_carries_context_and_details(self, error_handler):
        report = error_handler.handle_error(
            RoomNotFoundError("1234", "JoinRoom"),
            _context(connection_id="conn_1", room_key="1234"),
        )

        assert report.error_code == ErrorCodes.ROOM_NOT_FOUND
        assert report.error_message == "Room 1234 doesn't exists."
        assert report.connection_id == "conn_1"
        assert report.details == {"room_key": "1234", "operation": "JoinRoom"}

    def test_timeout_error_code(self, error_handler):
        assert error_handler.handle_error(asyncio.TimeoutError(), _context()).error_code == ErrorCodes.SEND_TIMEOUT

    def test_statistics(self, error_handler):
        error_handler.handle_error(SignalDecodeError("a"), _context())
        error_handler.handle_error(SignalDecodeError("b"), _context())
        error_handler.handle_error(DeliveryError("c"), _context())

        stats = error_handler.get_error_statistics()

        assert stats["total_errors"] == 3
        assert stats["error_breakdown"] == {
            "protocol_SignalDecodeError": 2,
            "delivery_DeliveryError": 1,
        }
