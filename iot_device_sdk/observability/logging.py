"""
Structured logging utility for device and module clients.

This module provides a consistent logging interface for the client layers,
ensuring structured logging with standard fields like component, device_id
and operation.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional


class ClientLogger:
    """Structured logger for client components."""

    def __init__(self, component: str, device_id: Optional[str] = None,
                 module_id: Optional[str] = None):
        """
        Initialize logger for a specific component.

        Args:
            component: Name of the component (e.g., "client", "twin")
            device_id: Device identity, when known
            module_id: Module identity, for module clients
        """
        self.component = component
        self.device_id = device_id
        self.module_id = module_id
        self.logger = logging.getLogger(f"iot_device_sdk.{component}")

    def _format_message(self, message: str, **kwargs) -> str:
        """Format message with structured fields."""
        fields = [f"component={self.component}"]
        if self.device_id:
            fields.append(f"device_id={self.device_id}")
        if self.module_id:
            fields.append(f"module_id={self.module_id}")

        for key, value in kwargs.items():
            if value is not None:
                fields.append(f"{key}={value}")

        return f"[{' '.join(fields)}] {message}"

    def debug(self, message: str, operation: Optional[str] = None, **kwargs):
        self.logger.debug(self._format_message(message, operation=operation, **kwargs))

    def info(self, message: str, operation: Optional[str] = None, **kwargs):
        self.logger.info(self._format_message(message, operation=operation, **kwargs))

    def warning(self, message: str, operation: Optional[str] = None, **kwargs):
        self.logger.warning(self._format_message(message, operation=operation, **kwargs))

    def error(self, message: str, operation: Optional[str] = None,
              error: Optional[BaseException] = None, **kwargs):
        """Log error message with structured fields."""
        if error:
            kwargs['error_type'] = type(error).__name__
            kwargs['error_msg'] = str(error)

        self.logger.error(self._format_message(message, operation=operation, **kwargs))

    @asynccontextmanager
    async def track_operation(self, operation: str):
        """
        Log the start, completion and failure of an operation.

        Errors are logged and re-raised.
        """
        start_time = time.monotonic()
        self.debug(f"Starting {operation}", operation=operation)
        try:
            yield
        except Exception as e:
            self.error(
                f"Failed {operation}",
                operation=operation,
                duration_ms=int((time.monotonic() - start_time) * 1000),
                error=e
            )
            raise
        self.debug(
            f"Completed {operation}",
            operation=operation,
            duration_ms=int((time.monotonic() - start_time) * 1000)
        )
