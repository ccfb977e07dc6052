"""Exchange result data model.

This module defines the immutable ExchangeResult dataclass, the Direction
enum and the DataEvent delivered to observer listeners.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional
import time


class Direction(Enum):
    """Direction of data relative to the host."""
    SENT = "sent"
    RECEIVED = "received"


@dataclass(frozen=True)
class ExchangeResult:
    """Immutable outcome of one half of an exchange.

    A received result owns the sent result that preceded it through
    ``inner``, forming a short non-cyclic chain for diagnostics. A failed
    result carries the error instead of text but keeps its inner result.

    Attributes:
        direction: SENT for the request, RECEIVED for the response
        text: Request or response text (None when failed before any text)
        error: Failure reason (None on success)
        inner: Preceding result (the request for a response)
        elapsed: Seconds spent on this half of the exchange
        timestamp: Unix timestamp when the result was created

    Example:
        >>> sent = ExchangeResult.sent("AT+CSQ")
        >>> result = ExchangeResult.received("+CSQ: 20,99\\r\\nOK", inner=sent)
        >>> result.request_text
        'AT+CSQ'
    """

    direction: Direction
    text: Optional[str] = None
    error: Optional[Exception] = None
    inner: Optional['ExchangeResult'] = None
    elapsed: float = 0.0
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def sent(cls, text: str, elapsed: float = 0.0) -> 'ExchangeResult':
        return cls(Direction.SENT, text=text, elapsed=elapsed)

    @classmethod
    def received(cls,
                 text: str,
                 inner: Optional['ExchangeResult'] = None,
                 elapsed: float = 0.0) -> 'ExchangeResult':
        return cls(Direction.RECEIVED, text=text, inner=inner, elapsed=elapsed)

    @classmethod
    def failure(cls,
                direction: Direction,
                error: Exception,
                text: Optional[str] = None,
                inner: Optional['ExchangeResult'] = None,
                elapsed: float = 0.0) -> 'ExchangeResult':
        return cls(direction, text=text, error=error, inner=inner, elapsed=elapsed)

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def request_text(self) -> Optional[str]:
        """Text of the first SENT result in the chain."""
        for result in self.chain():
            if result.direction == Direction.SENT:
                return result.text
        return None

    @property
    def response_text(self) -> Optional[str]:
        """Response text, or None if this result is not a successful response."""
        if self.direction == Direction.RECEIVED and not self.failed:
            return self.text
        return None

    def chain(self) -> Iterator['ExchangeResult']:
        """Iterate this result followed by its inner results."""
        result: Optional[ExchangeResult] = self
        while result is not None:
            yield result
            result = result.inner

    def raise_for_error(self) -> None:
        """Re-raise the captured error, if any."""
        if self.error is not None:
            raise self.error

    def __str__(self) -> str:
        """Format result for display."""
        if self.failed:
            return f"[{self.direction.value}:failed] {self.error} ({self.elapsed:.3f}s)"
        return f"[{self.direction.value}] {self.text!r} ({self.elapsed:.3f}s)"


@dataclass(frozen=True)
class DataEvent:
    """Notification raised by the observer for unsolicited data.

    Attributes:
        port: Port the data arrived on
        text: Captured text (None when failed)
        error: Link failure that ended observation (None on success)
        direction: Always RECEIVED for observer notifications
        timestamp: Unix timestamp of delivery
    """

    port: str
    text: Optional[str] = None
    error: Optional[Exception] = None
    direction: Direction = Direction.RECEIVED
    timestamp: float = field(default_factory=time.time)

    @property
    def failed(self) -> bool:
        return self.error is not None
