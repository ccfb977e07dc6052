"""Cooperative cancellation for long-running waits.

A CancellationToken is a thread-safe flag checked at every poll iteration
of a response wait. Cancel from any thread; the waiting side raises
OperationCanceledError at its next check.
"""

import threading

from atlink.core.exceptions import OperationCanceledError


class CancellationToken:
    """Thread-safe cooperative cancellation flag.

    Example:
        >>> token = CancellationToken()
        >>> task = asyncio.ensure_future(port.get_response_async('AT', cancel_token=token))
        >>> token.cancel()
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._event.set()

    @property
    def cancel_requested(self) -> bool:
        return self._event.is_set()

    def raise_if_canceled(self) -> None:
        """Raise OperationCanceledError if cancellation was requested."""
        if self._event.is_set():
            raise OperationCanceledError()

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds, waking early on cancellation."""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        return f"CancellationToken(canceled={self.cancel_requested})"
