"""Response framing for AT command replies.

AT replies carry no length prefix, so completion is inferred. Two
strategies are available:

- TERMINATOR (primary): the accumulated text ends with a final result
  code (``<nl>OK<nl>``, ``<nl>ERROR<nl>``) or the interactive prompt
  (``<nl>> ``). The set is configurable per device profile.
- STABILITY (fallback): the pending byte count stays non-zero and
  unchanged for a short window. If the pending bytes vanish before
  settling (the input buffer was discarded) the read ends with empty text.

Known limitation: a payload that legitimately contains a terminator
sequence mid-stream completes the read early. Only the device profile
can mitigate this.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, TYPE_CHECKING
import asyncio
import codecs
import logging
import time

from atlink.core.exceptions import ResponseTimeoutError

if TYPE_CHECKING:
    from atlink.core.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class CompletionMode(Enum):
    """Strategy used to decide that a reply is complete."""
    TERMINATOR = "terminator"
    STABILITY = "stability"


@dataclass(frozen=True)
class DeviceProfile:
    """Terminator set recognized for a family of devices.

    Attributes:
        name: Profile identifier
        final_results: Result codes that end a reply when on their own line
        prompt: Interactive prompt that ends a reply (None disables it)
        error_prefixes: Line prefixes that end a reply (e.g. '+CME ERROR:')
    """
    name: str = "generic"
    final_results: Tuple[str, ...] = ("OK", "ERROR")
    prompt: Optional[str] = "> "
    error_prefixes: Tuple[str, ...] = ()


GENERIC_PROFILE = DeviceProfile()

EXTENDED_PROFILE = DeviceProfile(
    name="extended",
    final_results=("OK", "ERROR", "NO CARRIER", "BUSY", "NO ANSWER", "NO DIALTONE"),
    prompt="> ",
    error_prefixes=("+CME ERROR:", "+CMS ERROR:"),
)

BUILTIN_PROFILES = {
    GENERIC_PROFILE.name: GENERIC_PROFILE,
    EXTENDED_PROFILE.name: EXTENDED_PROFILE,
}


class ResponseFramer:
    """Accumulates transport bytes until a reply is complete.

    The transport is any object exposing pyserial's ``in_waiting`` and
    ``read(size)``. The framer never writes and never owns the transport.

    Example:
        >>> framer = ResponseFramer(newline='\\r\\n')
        >>> framer.is_complete('\\r\\n+CSQ: 20,99\\r\\n\\r\\nOK\\r\\n')
        True
        >>> framer.normalize('\\r\\n+CSQ: 20,99\\r\\n\\r\\nOK\\r\\n')
        '+CSQ: 20,99\\r\\nOK'
    """

    def __init__(self,
                 newline: str = "\r\n",
                 profile: Optional[DeviceProfile] = None,
                 mode: CompletionMode = CompletionMode.TERMINATOR,
                 stability_window: float = 0.05,
                 poll_interval: float = 0.001,
                 encoding: str = "latin-1"):
        """Initialize framer.

        Args:
            newline: Line terminator used by the device
            profile: Terminator set (default: generic OK/ERROR/prompt)
            mode: Default completion strategy
            stability_window: Seconds the byte count must hold for STABILITY
            poll_interval: Seconds between transport polls
            encoding: Text encoding of the link
        """
        self.newline = newline
        self.profile = profile or GENERIC_PROFILE
        self.mode = mode
        self.stability_window = stability_window
        self.poll_interval = poll_interval
        self.encoding = encoding
        self.endings = self._build_endings()

    def _build_endings(self) -> Tuple[str, ...]:
        nl = self.newline
        endings = [f"{nl}{result}{nl}" for result in self.profile.final_results]
        if self.profile.prompt:
            endings.append(f"{nl}{self.profile.prompt}")
        return tuple(endings)

    def is_complete(self, text: str) -> bool:
        """Check whether accumulated text ends with a recognized terminator."""
        if text.endswith(self.endings):
            return True
        if not self.profile.error_prefixes or not text.endswith(self.newline):
            return False
        body = text[:-len(self.newline)]
        start = body.rfind(self.newline)
        if start < 0:
            return False
        last_line = body[start + len(self.newline):]
        return last_line.startswith(self.profile.error_prefixes)

    def normalize(self, text: str) -> str:
        """Trim surrounding whitespace and collapse a doubled newline."""
        return text.strip().replace(self.newline + self.newline, self.newline)

    def collect(self,
                transport,
                cancel_token: Optional['CancellationToken'] = None,
                timeout: Optional[float] = None,
                mode: Optional[CompletionMode] = None,
                port: str = "",
                stability_window: Optional[float] = None) -> str:
        """Block until a complete reply is read from the transport.

        Args:
            transport: pyserial-like transport
            cancel_token: Checked at every poll iteration
            timeout: Seconds before giving up (None waits forever)
            mode: Override the default completion strategy
            port: Port name used in error messages
            stability_window: Override the STABILITY window in seconds

        Returns:
            Normalized reply text

        Raises:
            OperationCanceledError: Cancellation observed
            ResponseTimeoutError: Deadline exceeded (partial holds every byte read)
        """
        collector = _Collector(self, transport, mode or self.mode, stability_window)
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            if cancel_token is not None:
                cancel_token.raise_if_canceled()
            if collector.step():
                return self.normalize(collector.text)
            self._check_deadline(collector, deadline, timeout, port)
            if cancel_token is not None:
                cancel_token.wait(self.poll_interval)
            else:
                time.sleep(self.poll_interval)

    async def collect_async(self,
                            transport,
                            cancel_token: Optional['CancellationToken'] = None,
                            timeout: Optional[float] = None,
                            mode: Optional[CompletionMode] = None,
                            port: str = "",
                            stability_window: Optional[float] = None) -> str:
        """Coroutine variant of collect(); yields to the event loop between polls."""
        collector = _Collector(self, transport, mode or self.mode, stability_window)
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            if cancel_token is not None:
                cancel_token.raise_if_canceled()
            if collector.step():
                return self.normalize(collector.text)
            self._check_deadline(collector, deadline, timeout, port)
            await asyncio.sleep(self.poll_interval)

    def _check_deadline(self, collector: '_Collector', deadline: Optional[float],
                        timeout: Optional[float], port: str) -> None:
        if deadline is not None and time.monotonic() >= deadline:
            collector.drain()
            logger.debug("Response deadline exceeded with %d chars buffered",
                         len(collector.text))
            raise ResponseTimeoutError(
                f"No complete response within {timeout:.3f}s",
                port,
                timeout,
                partial=collector.text
            )

    def __repr__(self) -> str:
        return (f"ResponseFramer(profile={self.profile.name!r}, "
                f"mode={self.mode.value}, newline={self.newline!r})")


class _Collector:
    """One in-progress read; ``step()`` performs a single poll."""

    def __init__(self, framer: ResponseFramer, transport, mode: CompletionMode,
                 stability_window: Optional[float] = None):
        self._framer = framer
        self._window = (framer.stability_window if stability_window is None
                        else stability_window)
        self._transport = transport
        self._mode = mode
        self._decoder = codecs.getincrementaldecoder(framer.encoding)(errors="replace")
        self._last_count = 0
        self._changed_at = time.monotonic()
        self._seen_pending = False
        self.text = ""

    def step(self) -> bool:
        """Poll the transport once. Returns True when the reply is complete."""
        pending = self._transport.in_waiting
        if self._mode == CompletionMode.TERMINATOR:
            if pending:
                self._append(self._transport.read(pending))
                return self._framer.is_complete(self.text)
            return False

        now = time.monotonic()
        if pending:
            self._seen_pending = True
        elif self._seen_pending and not self.text:
            logger.debug("Pending bytes drained by another reader before settling")
            return True
        if pending != self._last_count:
            self._last_count = pending
            self._changed_at = now
            return False
        if pending and now - self._changed_at >= self._window:
            self._append(self._transport.read(pending))
            return True
        return False

    def drain(self) -> None:
        """Move any pending bytes into the text without completing."""
        pending = self._transport.in_waiting
        if pending:
            self._append(self._transport.read(pending))

    def _append(self, data: bytes) -> None:
        self.text += self._decoder.decode(data)
