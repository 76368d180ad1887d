"""
Logging Configuration for Media Relay Service
"""

import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


def setup_logging(log_level: str = "INFO", log_dir: str = "./logs", log_to_file: bool = True):
    """Setup comprehensive logging configuration"""

    # Convert log level string to logging constant
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    # Create formatters
    detailed_formatter = logging.Formatter(
        '%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    simple_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )

    # Root logger configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers
    root_logger.handlers.clear()

    # Console handler for development
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(simple_formatter)
    root_logger.addHandler(console_handler)

    websocket_logger = logging.getLogger("websocket")
    rooms_logger = logging.getLogger("rooms")
    websocket_logger.setLevel(logging.INFO)
    rooms_logger.setLevel(logging.INFO)

    if log_to_file:
        Path(log_dir).mkdir(parents=True, exist_ok=True)

        # File handler for general application logs
        app_log_file = os.path.join(log_dir, "relay_service.log")
        file_handler = logging.handlers.RotatingFileHandler(
            app_log_file,
            maxBytes=50 * 1024 * 1024,  # 50MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(detailed_formatter)
        root_logger.addHandler(file_handler)

        # Error log file for errors and above
        error_log_file = os.path.join(log_dir, "errors.log")
        error_handler = logging.handlers.RotatingFileHandler(
            error_log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=3,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(detailed_formatter)
        root_logger.addHandler(error_handler)

        # WebSocket log for connection tracking
        websocket_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, "websocket.log"),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=2,
            encoding='utf-8'
        )
        websocket_handler.setLevel(logging.INFO)
        websocket_handler.setFormatter(detailed_formatter)
        websocket_logger.addHandler(websocket_handler)
        websocket_logger.propagate = False

        # Room lifecycle log
        rooms_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, "rooms.log"),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=2,
            encoding='utf-8'
        )
        rooms_handler.setLevel(logging.INFO)
        rooms_handler.setFormatter(detailed_formatter)
        rooms_logger.addHandler(rooms_handler)
        rooms_logger.propagate = False

    # Suppress verbose logs from external libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("fastapi").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)

    # Log setup completion
    logging.info(f"🔍 Logging configured - Level: {log_level}, Directory: {log_dir if log_to_file else '-'}")

    return root_logger


def log_websocket_event(event: str, connection_id: Optional[str] = None, additional_data: dict = None):
    """Log WebSocket events in structured format"""
    logger = logging.getLogger("websocket")

    event_data = {
        "event": event,
        "connection_id": connection_id,
        "timestamp": datetime.now().isoformat()
    }

    if additional_data:
        event_data.update(additional_data)

    logger.info(f"WEBSOCKET: {event_data}")


def log_room_event(operation: str, room_key: Optional[str], connection_id: Optional[str] = None,
                   status: str = "success", additional_data: dict = None):
    """Log room lifecycle operations in structured format"""
    logger = logging.getLogger("rooms")

    operation_data = {
        "operation": operation,
        "room_key": room_key,
        "connection_id": connection_id,
        "status": status,
        "timestamp": datetime.now().isoformat()
    }

    if additional_data:
        operation_data.update(additional_data)

    logger.info(f"ROOM_OP: {operation_data}")
