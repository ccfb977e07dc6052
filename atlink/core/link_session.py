"""Serial link session for AT command communication.

This module owns the transport handle (a pyserial port object) and
exposes open/close, write and read primitives. Reads are delegated to
the ResponseFramer. A shared ``receiving`` flag tells the observer that
an exchange owns the link.
"""

from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING
import asyncio
import logging
import threading
import time

import serial

from atlink.core.exceptions import (
    AtLinkError,
    ArgumentError,
    InvalidStateError,
    LinkError,
    LinkBusyError,
    LinkPermissionError,
    ConnectionTimeoutError,
)
from atlink.core.framer import CompletionMode, ResponseFramer

# Avoid circular import for type hints
if TYPE_CHECKING:
    from atlink.core.cancellation import CancellationToken
    from atlink.logging.communication_logger import CommunicationLogger

logger = logging.getLogger(__name__)


class Parity(Enum):
    """Parity checking mode."""
    NONE = serial.PARITY_NONE
    EVEN = serial.PARITY_EVEN
    ODD = serial.PARITY_ODD
    MARK = serial.PARITY_MARK
    SPACE = serial.PARITY_SPACE


class StopBits(Enum):
    """Number of stop bits."""
    ONE = serial.STOPBITS_ONE
    ONE_POINT_FIVE = serial.STOPBITS_ONE_POINT_FIVE
    TWO = serial.STOPBITS_TWO


class Handshake(Enum):
    """Flow control mode."""
    NONE = "none"
    XON_XOFF = "xon_xoff"
    RTS_CTS = "rts_cts"
    REQUEST_TO_SEND_XON_XOFF = "rts_cts_xon_xoff"


@dataclass(frozen=True)
class LinkSettings:
    """Serial link configuration.

    Attributes:
        port: Device path or pyserial URL ('/dev/ttyUSB0', 'COM3', 'loop://')
        baud_rate: Baud rate
        data_bits: Data bits per character (5-8)
        parity: Parity mode
        stop_bits: Stop bits
        handshake: Flow control mode
        dtr_enable: Assert DTR after opening
        rts_enable: Assert RTS after opening
        read_timeout: Response deadline in seconds (None waits forever)
        write_timeout: Write timeout in seconds (None blocks)
        newline: Line terminator appended to requests and used for framing
        encoding: Single-byte text encoding so payloads pass unmodified
        poll_interval: Seconds between transport polls
        discard_before_write: Flush both buffers before each request
    """
    port: str
    baud_rate: int = 115200
    data_bits: int = 8
    parity: Parity = Parity.NONE
    stop_bits: StopBits = StopBits.ONE
    handshake: Handshake = Handshake.NONE
    dtr_enable: bool = True
    rts_enable: bool = True
    read_timeout: Optional[float] = None
    write_timeout: Optional[float] = None
    newline: str = "\r\n"
    encoding: str = "latin-1"
    poll_interval: float = 0.001
    discard_before_write: bool = False

    def __post_init__(self):
        if not isinstance(self.port, str) or not self.port:
            raise ArgumentError("port must be a non-empty string")
        if self.baud_rate <= 0:
            raise ArgumentError(f"baud_rate must be positive, got {self.baud_rate}")
        if self.data_bits not in (5, 6, 7, 8):
            raise ArgumentError(f"data_bits must be 5-8, got {self.data_bits}")
        if not self.newline:
            raise ArgumentError("newline must not be empty")
        if self.poll_interval <= 0:
            raise ArgumentError("poll_interval must be positive")

    def serial_kwargs(self) -> dict:
        """Keyword arguments for serial.serial_for_url()."""
        return {
            "baudrate": self.baud_rate,
            "bytesize": self.data_bits,
            "parity": self.parity.value,
            "stopbits": self.stop_bits.value,
            "timeout": self.read_timeout,
            "write_timeout": self.write_timeout,
            "xonxoff": self.handshake in (Handshake.XON_XOFF,
                                          Handshake.REQUEST_TO_SEND_XON_XOFF),
            "rtscts": self.handshake in (Handshake.RTS_CTS,
                                         Handshake.REQUEST_TO_SEND_XON_XOFF),
        }


class LinkSession:
    """Owns the serial transport and its open/closed lifecycle.

    State machine: Closed -open()-> Open -close()-> Closed. ``open()`` on
    an open session and ``close()`` on a closed one are no-ops. Exchanges
    are serialized by an internal lock; the observer only drains the link
    when it can take that lock without waiting.

    Example:
        >>> session = LinkSession(LinkSettings('/dev/ttyUSB0'))
        >>> session.open()
        >>> session.write_request('AT+CSQ')
        >>> print(session.read_response())
        +CSQ: 20,99
        OK
        >>> session.close()
    """

    def __init__(self,
                 settings: LinkSettings,
                 framer: Optional[ResponseFramer] = None,
                 comm_logger: Optional['CommunicationLogger'] = None):
        """Initialize session with link configuration.

        Args:
            settings: Link configuration
            framer: Response framer (default built from settings)
            comm_logger: Optional CommunicationLogger for port events

        Raises:
            ArgumentError: settings is not a LinkSettings
        """
        if not isinstance(settings, LinkSettings):
            raise ArgumentError("settings must be a LinkSettings instance")
        self.settings = settings
        self.framer = framer or ResponseFramer(
            newline=settings.newline,
            poll_interval=settings.poll_interval,
            encoding=settings.encoding
        )
        self.comm_logger = comm_logger
        self._serial = None
        self._state_lock = threading.Lock()
        self._exchange_lock = threading.Lock()
        self._receiving_depth = 0
        self._open_time: Optional[float] = None

    @property
    def port(self) -> str:
        return self.settings.port

    @property
    def is_open(self) -> bool:
        transport = self._serial
        return transport is not None and transport.is_open

    @property
    def receiving(self) -> bool:
        """True while an exchange or read owns the link."""
        return self._receiving_depth > 0

    # -- lifecycle -------------------------------------------------------

    def open(self) -> None:
        """Open the serial port. No-op when already open.

        Raises:
            LinkPermissionError: Permission denied
            LinkBusyError: Port already in use
            ConnectionTimeoutError: Open timeout exceeded
            LinkError: Any other hardware or OS failure
        """
        with self._state_lock:
            if self.is_open:
                return

            try:
                transport = serial.serial_for_url(
                    self.port,
                    do_not_open=True,
                    **self.settings.serial_kwargs()
                )
                transport.dtr = self.settings.dtr_enable
                transport.rts = self.settings.rts_enable
                transport.open()
            except (serial.SerialException, OSError, ValueError) as e:
                self._log_error(f"Failed to open port: {e}", e)
                raise self._classify_open_error(e)

            self._serial = transport
            self._open_time = time.time()
            logger.debug("Opened %s", self.port)

            if self.comm_logger:
                self.comm_logger.log_port_event(
                    event="Port opened",
                    port=self.port,
                    details={"baud_rate": self.settings.baud_rate,
                             "read_timeout": self.settings.read_timeout},
                )

    def _classify_open_error(self, error: Exception) -> LinkError:
        error_msg = str(error).lower()
        if 'permission denied' in error_msg or 'access denied' in error_msg:
            return LinkPermissionError(
                f"Permission denied accessing port {self.port}", self.port, error)
        if 'busy' in error_msg or 'in use' in error_msg:
            return LinkBusyError(
                f"Port {self.port} is already in use", self.port, error)
        if 'timeout' in error_msg or 'timed out' in error_msg:
            return ConnectionTimeoutError(
                f"Timeout opening port {self.port}", self.port, error)
        return LinkError(f"Failed to open port {self.port}: {error}", self.port, error)

    def close(self) -> None:
        """Close the serial port. No-op when already closed.

        Raises:
            LinkError: Closing the transport failed
        """
        with self._state_lock:
            transport = self._serial
            if transport is None or not transport.is_open:
                self._serial = None
                return

            try:
                transport.close()
            except (serial.SerialException, OSError) as e:
                self._log_error(f"Error closing port: {e}", e)
                raise LinkError(f"Failed to close port {self.port}", self.port, e)
            finally:
                self._serial = None

            logger.debug("Closed %s", self.port)
            if self.comm_logger:
                duration = time.time() - self._open_time if self._open_time else None
                self.comm_logger.log_port_event(
                    event="Port closed",
                    port=self.port,
                    details={"session_duration_seconds": duration} if duration else None,
                )
            self._open_time = None

    def try_open(self) -> bool:
        """Open the port, returning False instead of raising."""
        try:
            self.open()
            return True
        except AtLinkError:
            return False

    def try_close(self) -> bool:
        """Close the port, returning False instead of raising."""
        try:
            self.close()
            return True
        except AtLinkError:
            return False

    # -- buffers ---------------------------------------------------------

    def discard_in_buffer(self) -> None:
        """Drop bytes received but not yet read."""
        transport = self._require_open("discard input buffer")
        self._wrap_io(transport.reset_input_buffer, "discard input buffer")

    def discard_out_buffer(self) -> None:
        """Drop bytes written but not yet transmitted."""
        transport = self._require_open("discard output buffer")
        self._wrap_io(transport.reset_output_buffer, "discard output buffer")

    def discard_buffer(self) -> None:
        """Drop pending bytes in both directions."""
        self.discard_in_buffer()
        self.discard_out_buffer()

    def bytes_available(self) -> int:
        """Number of received bytes waiting to be read."""
        transport = self._require_open("query pending bytes")
        return self._wrap_io(lambda: transport.in_waiting, "query pending bytes")

    # -- I/O -------------------------------------------------------------

    def write_request(self, text: str) -> int:
        """Write text followed by the configured newline.

        Args:
            text: Request text (e.g., 'AT+CSQ')

        Returns:
            Number of bytes written

        Raises:
            InvalidStateError: Port not open
            LinkError: Write failed
        """
        transport = self._require_open("write")
        if self.settings.discard_before_write:
            self.discard_buffer()

        data = (text + self.settings.newline).encode(self.settings.encoding)

        def _write() -> int:
            written = transport.write(data)
            transport.flush()
            return written

        written = self._wrap_io(_write, "write to")
        logger.debug("Wrote %d bytes to %s", written or 0, self.port)
        if self.comm_logger:
            self.comm_logger.log_request(port=self.port, request=text)
        return written

    def read_response(self,
                      cancel_token: Optional['CancellationToken'] = None,
                      timeout: Optional[float] = None,
                      mode: Optional[CompletionMode] = None) -> str:
        """Read until the framer recognizes a complete reply.

        Args:
            cancel_token: Cooperative cancellation signal
            timeout: Deadline in seconds (default: settings.read_timeout)
            mode: Completion strategy override

        Returns:
            Normalized response text

        Raises:
            InvalidStateError: Port not open
            LinkError: Read failed
            ResponseTimeoutError: Deadline exceeded
            OperationCanceledError: Cancellation observed
        """
        transport = self._require_open("read from")
        with self._receiving():
            return self._wrap_io(
                lambda: self.framer.collect(
                    transport,
                    cancel_token=cancel_token,
                    timeout=self._timeout(timeout),
                    mode=mode,
                    port=self.port
                ),
                "read from"
            )

    async def read_response_async(self,
                                  cancel_token: Optional['CancellationToken'] = None,
                                  timeout: Optional[float] = None,
                                  mode: Optional[CompletionMode] = None) -> str:
        """Coroutine variant of read_response()."""
        transport = self._require_open("read from")
        with self._receiving():
            try:
                return await self.framer.collect_async(
                    transport,
                    cancel_token=cancel_token,
                    timeout=self._timeout(timeout),
                    mode=mode,
                    port=self.port
                )
            except (serial.SerialException, OSError) as e:
                raise LinkError(f"Failed to read from port {self.port}", self.port, e)

    def poll_unsolicited(self, settle_window: float) -> Optional[str]:
        """Drain pending unsolicited bytes if no exchange owns the link.

        Claims the link without waiting; returns None when an exchange is
        in flight or nothing is left to deliver (pending bytes that are
        discarded while settling count as nothing).

        Args:
            settle_window: Seconds the pending byte count must stay stable

        Returns:
            Normalized text, or None
        """
        if self.receiving or not self._exchange_lock.acquire(blocking=False):
            return None
        try:
            transport = self._serial
            if transport is None or not transport.is_open:
                return None
            if not self._wrap_io(lambda: transport.in_waiting, "poll"):
                return None
            with self._receiving():
                text = self._wrap_io(
                    lambda: self.framer.collect(
                        transport,
                        mode=CompletionMode.STABILITY,
                        stability_window=settle_window,
                        timeout=self._timeout(None),
                        port=self.port
                    ),
                    "read from"
                )
            return text or None
        finally:
            self._exchange_lock.release()

    # -- exchange ownership ----------------------------------------------

    @contextmanager
    def exclusive(self):
        """Own the link for a whole exchange; queues behind other exchanges."""
        with self._exchange_lock:
            with self._receiving():
                yield self

    @asynccontextmanager
    async def exclusive_async(self, cancel_token: Optional['CancellationToken'] = None):
        """Async variant of exclusive(); waits cooperatively for the lock."""
        while not self._exchange_lock.acquire(blocking=False):
            if cancel_token is not None:
                cancel_token.raise_if_canceled()
            await asyncio.sleep(self.settings.poll_interval)
        try:
            with self._receiving():
                yield self
        finally:
            self._exchange_lock.release()

    @contextmanager
    def _receiving(self):
        with self._state_lock:
            self._receiving_depth += 1
        try:
            yield
        finally:
            with self._state_lock:
                self._receiving_depth -= 1

    # -- helpers ---------------------------------------------------------

    def _require_open(self, action: str):
        transport = self._serial
        if transport is None or not transport.is_open:
            raise InvalidStateError(f"Cannot {action} port {self.port}: port is not open")
        return transport

    def _timeout(self, timeout: Optional[float]) -> Optional[float]:
        return timeout if timeout is not None else self.settings.read_timeout

    def _wrap_io(self, operation, action: str):
        try:
            return operation()
        except (serial.SerialException, OSError) as e:
            self._log_error(f"Failed to {action} port: {e}", e)
            raise LinkError(f"Failed to {action} port {self.port}", self.port, e)

    def _log_error(self, message: str, error: Exception) -> None:
        if self.comm_logger:
            self.comm_logger.log_error(
                source="LinkSession",
                error=message,
                details={"port": self.port, "error_type": type(error).__name__}
            )

    def __enter__(self):
        """Context manager entry: open port."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit: close port."""
        self.close()
        return False

    def __repr__(self) -> str:
        """String representation of session."""
        status = "open" if self.is_open else "closed"
        return f"LinkSession(port='{self.port}', baud={self.settings.baud_rate}, status={status})"
