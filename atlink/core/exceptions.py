"""Custom exception hierarchy for atlink.

This module defines all custom exceptions raised by the AT link engine,
providing structured error handling with the context needed for diagnostics.
"""

from typing import Optional


class AtLinkError(Exception):
    """Base exception for all atlink errors.

    All custom exceptions inherit from this base class to allow
    catching all library errors with a single except clause.
    """
    pass


class InvalidStateError(AtLinkError):
    """Operation attempted in the wrong open/closed state.

    Raised when reading, writing or discarding on a closed link, or when
    an entry point is called on a port that lacks the needed capability.
    """
    pass


class LinkError(AtLinkError):
    """Serial link I/O error.

    Raised when transport operations fail (open, close, read, write).
    Captures port identifier and underlying OS error for diagnostics.

    Attributes:
        port: Serial port identifier (e.g., '/dev/ttyUSB0', 'COM3', 'loop://')
        os_error: Original exception from pyserial or OS (if available)
    """

    def __init__(self, message: str, port: str, os_error: Optional[Exception] = None):
        """Initialize LinkError.

        Args:
            message: Human-readable error description
            port: Serial port identifier
            os_error: Original exception from pyserial/OS
        """
        super().__init__(message)
        self.port = port
        self.os_error = os_error

    def __str__(self) -> str:
        """Format error message with port context."""
        base_msg = super().__str__()
        if self.os_error:
            return f"{base_msg} (port: {self.port}, cause: {self.os_error})"
        return f"{base_msg} (port: {self.port})"


class LinkBusyError(LinkError):
    """Port is already in use by another process."""
    pass


class LinkPermissionError(LinkError):
    """Permission denied while accessing the port."""
    pass


class ConnectionTimeoutError(LinkError):
    """Opening the port did not complete in time."""
    pass


class ResponseTimeoutError(LinkError):
    """No complete response arrived before the read deadline.

    Attributes:
        partial: Text accumulated before the deadline expired
        timeout: The deadline in seconds
    """

    def __init__(self, message: str, port: str, timeout: float, partial: str = ""):
        super().__init__(message, port, None)
        self.timeout = timeout
        self.partial = partial


class OperationCanceledError(AtLinkError):
    """Cooperative cancellation was observed.

    The in-flight write (if any) is never aborted; only the wait that
    follows it. Bytes of a canceled response may still arrive, so callers
    should discard buffers before the next exchange.
    """

    def __init__(self, message: str = "Operation was canceled"):
        super().__init__(message)


class ArgumentError(AtLinkError, ValueError):
    """Invalid constructor or call argument."""
    pass


class ConfigError(AtLinkError, ValueError):
    """Configuration failed to load or validate.

    Attributes:
        errors: List of individual validation problems
    """

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []

    def __str__(self) -> str:
        """Format error message with every validation problem."""
        base_msg = super().__str__()
        if not self.errors:
            return base_msg
        error_list = '\n  - '.join(self.errors)
        return f"{base_msg}\n  - {error_list}"
