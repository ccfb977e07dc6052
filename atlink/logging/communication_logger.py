"""Communication logger for AT link traffic.

This module provides the CommunicationLogger class, a central coordinator
for logging requests, responses, unsolicited notifications and port
events. Output goes to an in-memory buffer and, optionally, to the console
(stderr) and a size-rotated file through standard logging handlers.
"""

from collections import deque
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Optional, List, Dict, Any
import logging
import sys

from atlink.logging.log_models import LogEntry
from atlink.config.config_models import LogLevel, LoggingConfig


class CommunicationLogger:
    """Central coordinator for communication logging.

    Attributes:
        log_level: Current log level (DEBUG, INFO, WARNING, ERROR)
        enable_file: Whether file logging is enabled
        enable_console: Whether console logging is enabled
        log_file_path: Path to log file (if file logging enabled)

    Example:
        >>> comm = CommunicationLogger(log_level=LogLevel.DEBUG)
        >>> comm.log_request(port="COM3", request="AT+CSQ")
        >>> comm.log_response(port="COM3", response="+CSQ: 20,99\\r\\nOK",
        ...                   status="SUCCESS", execution_time=0.05)
        >>> comm.close()
    """

    _LEVEL_PRIORITY = {
        "DEBUG": 0,
        "INFO": 1,
        "WARNING": 2,
        "ERROR": 3
    }

    def __init__(
        self,
        log_level: LogLevel = LogLevel.INFO,
        enable_file: bool = False,
        enable_console: bool = True,
        log_file_path: Optional[str] = None,
        max_file_size_mb: int = 10,
        backup_count: int = 5,
        buffer_size: int = 1000
    ):
        """Initialize CommunicationLogger with output destinations and log level.

        Args:
            log_level: Log level for filtering (default: INFO)
            enable_file: Enable file logging (default: False)
            enable_console: Enable console logging to stderr (default: True)
            log_file_path: Path to log file (required if enable_file=True)
            max_file_size_mb: Maximum file size before rotation (default: 10)
            backup_count: Number of backup files to keep (default: 5)
            buffer_size: Entries kept in the in-memory buffer (default: 1000)

        Raises:
            ValueError: If enable_file=True but log_file_path is None
            OSError: Log directory cannot be created or file cannot be opened
        """
        self.log_level = log_level.value if isinstance(log_level, LogLevel) else log_level
        self.enable_file = enable_file
        self.enable_console = enable_console
        self.log_file_path = log_file_path

        self._lock = Lock()
        self._buffer: deque = deque(maxlen=buffer_size)
        self._handlers: List[logging.Handler] = []

        if self.enable_console:
            self._handlers.append(logging.StreamHandler(sys.stderr))

        if self.enable_file:
            if not log_file_path:
                raise ValueError("log_file_path required when enable_file=True")
            path = Path(log_file_path).expanduser().resolve()
            path.parent.mkdir(parents=True, exist_ok=True)
            self._handlers.append(RotatingFileHandler(
                path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding='utf-8'
            ))

        formatter = logging.Formatter("%(message)s")
        for handler in self._handlers:
            handler.setFormatter(formatter)

    @classmethod
    def from_config(cls, config: LoggingConfig) -> 'CommunicationLogger':
        """Build a logger from the logging configuration section."""
        return cls(
            log_level=config.level,
            enable_file=config.file_path is not None,
            enable_console=config.console_output,
            log_file_path=config.file_path,
            max_file_size_mb=config.max_file_size_mb,
            backup_count=config.backup_count,
            buffer_size=config.buffer_size
        )

    def log(self, entry: LogEntry) -> None:
        """Log an entry to all enabled destinations with level filtering."""
        if not self._should_log(entry.level):
            return

        record = logging.LogRecord(
            name="atlink.comm",
            level=getattr(logging, entry.level, logging.INFO),
            pathname=__file__,
            lineno=0,
            msg=entry.to_string(),
            args=None,
            exc_info=None
        )

        with self._lock:
            self._buffer.append(entry)
            for handler in self._handlers:
                handler.handle(record)

    def _should_log(self, entry_level: str) -> bool:
        entry_priority = self._LEVEL_PRIORITY.get(entry_level, 0)
        current_priority = self._LEVEL_PRIORITY.get(self.log_level, 0)
        return entry_priority >= current_priority

    def log_request(self, port: str, request: str) -> None:
        """Log a request written to the device."""
        self.log(LogEntry(
            timestamp=datetime.now(),
            level="DEBUG",
            source="LinkSession",
            message="Sent request",
            port=port,
            request=request
        ))

    def log_response(
        self,
        port: str,
        response: str,
        status: str,
        execution_time: float,
        command: Optional[str] = None,
        error: Optional[str] = None
    ) -> None:
        """Log the outcome of an exchange.

        Args:
            port: Serial port name
            response: Response text received (empty when failed)
            status: SUCCESS, ERROR or CANCELED
            execution_time: Seconds spent waiting for the response
            command: Request text the response belongs to
            error: Failure description
        """
        if status == "SUCCESS":
            level = "INFO"
        elif status == "CANCELED":
            level = "WARNING"
        else:
            level = "ERROR"

        self.log(LogEntry(
            timestamp=datetime.now(),
            level=level,
            source="AtCommandPort",
            message="Received response",
            port=port,
            request=command,
            response=response,
            status=status,
            execution_time=execution_time,
            error=error
        ))

    def log_notification(self, port: str, text: str) -> None:
        """Log unsolicited data delivered by the observer."""
        self.log(LogEntry(
            timestamp=datetime.now(),
            level="INFO",
            source="Observer",
            message="Unsolicited data",
            port=port,
            response=text,
            status="NOTIFICATION"
        ))

    def log_port_event(
        self,
        event: str,
        port: str,
        details: Optional[Dict[str, Any]] = None,
        level: str = "INFO"
    ) -> None:
        """Log a serial port event such as 'Port opened'."""
        self.log(LogEntry(
            timestamp=datetime.now(),
            level=level,
            source="LinkSession",
            message=event,
            port=port,
            details=details
        ))

    def log_error(
        self,
        source: str,
        error: str,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log an error event."""
        self.log(LogEntry(
            timestamp=datetime.now(),
            level="ERROR",
            source=source,
            message="Error occurred",
            error=error,
            details=details
        ))

    def set_level(self, level: LogLevel) -> None:
        self.log_level = level.value if isinstance(level, LogLevel) else level

    def get_entries(self, limit: Optional[int] = None) -> List[LogEntry]:
        """Get buffered entries, oldest first.

        Args:
            limit: Return only the most recent entries (default: all)
        """
        with self._lock:
            entries = list(self._buffer)
        if limit:
            entries = entries[-limit:]
        return entries

    def clear_buffer(self) -> None:
        with self._lock:
            self._buffer.clear()

    def flush(self) -> None:
        with self._lock:
            for handler in self._handlers:
                handler.flush()

    def close(self) -> None:
        """Flush and close all handlers. Safe to call more than once."""
        with self._lock:
            for handler in self._handlers:
                handler.flush()
                handler.close()
            self._handlers = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
