"""Log data models for communication logging.

This module defines the immutable record written for requests, responses,
unsolicited notifications and serial port events.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Any, Optional
import json


@dataclass(frozen=True)
class LogEntry:
    """Immutable log entry for communication logging.

    Attributes:
        timestamp: When the event occurred
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        source: Component name (LinkSession, AtCommandPort, Observer)
        message: Short event description
        details: Free-form structured data
        port: Serial port the event happened on
        request: Request text written to the device
        response: Response or notification text read from the device
        status: SUCCESS, ERROR, CANCELED or NOTIFICATION
        execution_time: Seconds spent waiting for the response
        error: Error description

    Example:
        >>> entry = LogEntry(
        ...     timestamp=datetime.now(),
        ...     level="INFO",
        ...     source="AtCommandPort",
        ...     message="Received response",
        ...     port="COM3",
        ...     request="AT+CSQ",
        ...     status="SUCCESS",
        ...     execution_time=0.052
        ... )
        >>> entry.to_string()
        '2025-01-12 10:30:15.234 | INFO    | AtCommandPort   | Received response | REQ: AT+CSQ | STATUS: SUCCESS | TIME: 0.052s'
    """

    timestamp: datetime
    level: str
    source: str
    message: str
    details: Optional[Dict[str, Any]] = None

    port: Optional[str] = None
    request: Optional[str] = None
    response: Optional[str] = None
    status: Optional[str] = None
    execution_time: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert log entry to dictionary for serialization.

        Returns:
            Dictionary with all fields, ISO format for timestamp
        """
        return {
            'timestamp': self.timestamp.isoformat(),
            'level': self.level,
            'source': self.source,
            'message': self.message,
            'details': self.details,
            'port': self.port,
            'request': self.request,
            'response': self.response,
            'status': self.status,
            'execution_time': self.execution_time,
            'error': self.error
        }

    def to_string(self) -> str:
        """Format log entry as a single human-readable line."""
        timestamp_str = self.timestamp.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        base = f"{timestamp_str} | {self.level:7} | {self.source:15} | {self.message}"

        if self.request:
            base += f" | REQ: {self.request}"
        if self.response:
            base += f" | RESP: {self.response!r}"
        if self.status:
            base += f" | STATUS: {self.status}"
        if self.execution_time is not None:
            base += f" | TIME: {self.execution_time:.3f}s"
        if self.error:
            base += f" | ERROR: {self.error}"

        return base

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogEntry':
        """Create LogEntry from dictionary.

        Args:
            data: Dictionary with log entry fields (timestamp may be ISO string)

        Returns:
            LogEntry instance
        """
        timestamp = data['timestamp']
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)

        return cls(
            timestamp=timestamp,
            level=data['level'],
            source=data['source'],
            message=data['message'],
            details=data.get('details'),
            port=data.get('port'),
            request=data.get('request'),
            response=data.get('response'),
            status=data.get('status'),
            execution_time=data.get('execution_time'),
            error=data.get('error')
        )

    @classmethod
    def from_json(cls, json_str: str) -> 'LogEntry':
        return cls.from_dict(json.loads(json_str))
