"""Background delivery of unsolicited device output.

The Observer watches an open LinkSession for bytes that arrive while no
exchange is in flight (incoming call, SMS indication, network
registration change) and hands them to registered listeners.
"""

from typing import Callable, List, Optional, TYPE_CHECKING
import logging
import threading

from atlink.core.exceptions import LinkError, ResponseTimeoutError
from atlink.core.exchange_result import DataEvent

if TYPE_CHECKING:
    from atlink.core.link_session import LinkSession
    from atlink.logging.communication_logger import CommunicationLogger

logger = logging.getLogger(__name__)

DataListener = Callable[[DataEvent], None]


class Observer:
    """Dedicated thread that raises data-received notifications.

    The loop runs for the open lifetime of the session and exits when the
    session closes or ``stop()`` is called. It never drains the link while
    the session reports ``receiving``.

    Example:
        >>> observer = Observer(session)
        >>> observer.add_listener(lambda event: print(event.text))
        >>> session.open()
        >>> observer.start()
        ...
        >>> observer.stop()
    """

    def __init__(self,
                 session: 'LinkSession',
                 settle_window: float = 0.05,
                 idle_interval: Optional[float] = None,
                 comm_logger: Optional['CommunicationLogger'] = None):
        """Initialize observer.

        Args:
            session: Session to watch
            settle_window: Seconds unsolicited bytes must stop growing before delivery
            idle_interval: Seconds between idle polls (default: session poll interval)
            comm_logger: Optional CommunicationLogger for notifications
        """
        self.session = session
        self.settle_window = settle_window
        self.idle_interval = idle_interval or session.settings.poll_interval
        self.comm_logger = comm_logger
        self._listeners: List[DataListener] = []
        self._listeners_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def add_listener(self, listener: DataListener) -> None:
        with self._listeners_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: DataListener) -> None:
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def start(self) -> None:
        """Start the watch thread. No-op when already running."""
        if self.running:
            if self._stop_event.is_set():
                logger.warning("Observer on %s is still stopping; reusing its loop",
                               self.session.port)
                self._stop_event.clear()
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"atlink-observer-{self.session.port}",
            daemon=True
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = 1.0) -> None:
        """Signal the loop to exit and wait for it."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Observer on %s did not stop within %ss",
                               self.session.port, timeout)
                return
        self._thread = None

    def _run(self) -> None:
        logger.debug("Observer started on %s", self.session.port)
        while not self._stop_event.is_set() and self.session.is_open:
            try:
                text = self.session.poll_unsolicited(self.settle_window)
            except ResponseTimeoutError as e:
                logger.debug("Unsolicited data on %s did not settle: %s", self.session.port, e)
                text = self.session.framer.normalize(e.partial or "")
            except LinkError as e:
                if self._stop_event.is_set() or not self.session.is_open:
                    break
                logger.warning("Observer on %s stopped: %s", self.session.port, e)
                self._deliver(DataEvent(port=self.session.port, error=e))
                break

            if text:
                if self.comm_logger:
                    self.comm_logger.log_notification(port=self.session.port, text=text)
                self._deliver(DataEvent(port=self.session.port, text=text))
            else:
                self._stop_event.wait(self.idle_interval)
        logger.debug("Observer stopped on %s", self.session.port)

    def _deliver(self, event: DataEvent) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Data listener %r raised", listener)

    def __repr__(self) -> str:
        return f"Observer(port='{self.session.port}', running={self.running})"
