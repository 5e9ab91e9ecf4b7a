"""
Centralized logging configuration for the Catalog Import Service.

Provides a unified logging interface with:
- Structured logging with correlation IDs
- Console and JSON formats
- Performance tracking for long-running pipeline stages
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from app.core.config import config
from app.middleware.correlation_id import get_correlation_id, get_import_session_id


class StructuredLogger:
    """
    Enhanced logger with structured logging and correlation ID support.
    """

    def __init__(self):
        self.service_name = config.service_name
        self.environment = config.environment
        self.log_format = config.log_format
        self._setup_logging()

    def _setup_logging(self):
        """Configure Python logging with handlers"""
        root = logging.getLogger()
        root.handlers.clear()

        level = getattr(logging, config.log_level.upper(), logging.INFO)
        root.setLevel(level)

        if config.log_to_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)

            if self.log_format == "json":
                console_handler.setFormatter(JSONFormatter())
            else:
                console_handler.setFormatter(ConsoleFormatter())

            root.addHandler(console_handler)

        if config.log_to_file:
            log_dir = os.path.dirname(config.log_file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = logging.FileHandler(config.log_file_path)
            file_handler.setLevel(level)
            file_handler.setFormatter(JSONFormatter())  # Always JSON for files

            root.addHandler(file_handler)

    def _build_log_entry(
        self,
        level: str,
        message: str,
        correlation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Build structured log entry"""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.upper(),
            "service": self.service_name,
            "environment": self.environment,
            "message": message,
            "correlationId": correlation_id or get_correlation_id(),
        }

        session_id = get_import_session_id()
        if session_id:
            entry["importSessionId"] = session_id

        if metadata:
            entry["metadata"] = metadata

        entry.update(kwargs)

        return entry

    def _log(
        self,
        level: str,
        message: str,
        correlation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Internal logging method"""
        log_entry = self._build_log_entry(level, message, correlation_id, metadata, **kwargs)

        log_method = getattr(logging.getLogger(self.service_name), level.lower())

        if self.log_format == "json":
            log_method(json.dumps(log_entry, default=str))
        else:
            # Don't pass 'message' in extra to avoid conflict with LogRecord
            extra_data = {k: v for k, v in log_entry.items() if k != "message"}
            log_method(message, extra=extra_data)

    def debug(self, message: str, correlation_id: Optional[str] = None,
              metadata: Optional[Dict[str, Any]] = None, **kwargs):
        """Debug level logging"""
        self._log("DEBUG", message, correlation_id, metadata, **kwargs)

    def info(self, message: str, correlation_id: Optional[str] = None,
             metadata: Optional[Dict[str, Any]] = None, **kwargs):
        """Info level logging"""
        self._log("INFO", message, correlation_id, metadata, **kwargs)

    def warning(self, message: str, correlation_id: Optional[str] = None,
                metadata: Optional[Dict[str, Any]] = None, **kwargs):
        """Warning level logging"""
        self._log("WARNING", message, correlation_id, metadata, **kwargs)

    def error(
        self,
        message: str,
        correlation_id: Optional[str] = None,
        error: Optional[Union[str, Exception]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Error level logging"""
        if metadata is None:
            metadata = {}

        if error:
            if isinstance(error, Exception):
                metadata["error"] = {
                    "type": type(error).__name__,
                    "message": str(error),
                }
            else:
                metadata["error"] = {"message": str(error)}

        self._log("ERROR", message, correlation_id, metadata, **kwargs)

    def performance(
        self,
        operation: str,
        duration_ms: int,
        threshold_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Log performance metrics"""
        if metadata is None:
            metadata = {}

        metadata.update({
            "operation": operation,
            "durationMs": duration_ms,
            "thresholdMs": threshold_ms,
        })

        level = "WARNING" if threshold_ms and duration_ms > threshold_ms else "INFO"
        self._log(level, f"Operation completed: {operation}", metadata=metadata, **kwargs)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    RESERVED = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs',
        'message', 'pathname', 'process', 'processName',
        'relativeCreated', 'thread', 'threadName', 'exc_info',
        'exc_text', 'stack_info', 'taskName',
    }

    def format(self, record):
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": config.service_name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in self.RESERVED:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored console formatter for development"""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset = self.COLORS['RESET']

        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')

        return f"{color}[{timestamp}] {record.levelname}{reset} - {record.getMessage()}"


# Create and export the logger instance
logger = StructuredLogger()
