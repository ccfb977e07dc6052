"""Shared fixtures for atlink tests.

Provides an in-memory stand-in for a pyserial port and fixtures that patch
serial.serial_for_url so sessions open it instead of hardware.
"""

from collections import deque
from unittest.mock import patch
import threading

import pytest

from atlink.core.at_port import AtCommandPort, Capability
from atlink.core.link_session import LinkSettings


class FakeSerial:
    """In-memory serial port driven by scripted replies.

    Each write pops the next queued reply (if any) into the receive buffer,
    mimicking a device that answers every request. ``feed()`` injects
    unsolicited bytes at any time.
    """

    def __init__(self):
        self.port = None
        self.kwargs = {}
        self.is_open = False
        self.dtr = None
        self.rts = None
        self.written = bytearray()
        self.replies = deque()
        self.open_error = None
        self.close_error = None
        self.write_error = None
        self.read_error = None
        self.input_resets = 0
        self.output_resets = 0
        self._rx = bytearray()
        self._lock = threading.Lock()

    def open(self):
        if self.open_error:
            raise self.open_error
        self.is_open = True

    def close(self):
        if self.close_error:
            raise self.close_error
        self.is_open = False

    @property
    def in_waiting(self):
        if self.read_error:
            raise self.read_error
        with self._lock:
            return len(self._rx)

    def read(self, size=1):
        with self._lock:
            data = bytes(self._rx[:size])
            del self._rx[:size]
        return data

    def write(self, data):
        if self.write_error:
            raise self.write_error
        self.written.extend(data)
        if self.replies:
            reply = self.replies.popleft()
            if reply is not None:
                self.feed(reply)
        return len(data)

    def flush(self):
        pass

    def reset_input_buffer(self):
        self.input_resets += 1
        with self._lock:
            self._rx.clear()

    def reset_output_buffer(self):
        self.output_resets += 1

    def feed(self, data):
        """Append bytes (or latin-1 text) to the receive buffer."""
        if isinstance(data, str):
            data = data.encode("latin-1")
        with self._lock:
            self._rx.extend(data)

    def queue_reply(self, data):
        """Queue the reply for the next write (None means stay silent)."""
        self.replies.append(data)

    @property
    def written_text(self):
        return self.written.decode("latin-1")


def unescape_string(literal):
    """Reverse escape_string(): strip the quotes and undo the escapes."""
    assert literal.startswith('"') and literal.endswith('"')
    body = literal[1:-1]
    mapping = {"\\": "\\", '"': '"', "n": "\n", "r": "\r", "t": "\t"}
    result = []
    i = 0
    while i < len(body):
        char = body[i]
        if char == "\\":
            result.append(mapping[body[i + 1]])
            i += 2
        else:
            result.append(char)
            i += 1
    return "".join(result)


@pytest.fixture
def unescape():
    return unescape_string


@pytest.fixture
def fake_serial():
    """Patch serial.serial_for_url to hand out a FakeSerial."""
    fake = FakeSerial()

    def factory(url, do_not_open=False, **kwargs):
        fake.port = url
        fake.kwargs = kwargs
        fake.do_not_open = do_not_open
        return fake

    with patch("serial.serial_for_url", side_effect=factory) as mock_for_url:
        fake.factory = mock_for_url
        yield fake


@pytest.fixture
def settings():
    return LinkSettings("COM3", read_timeout=1.0)


@pytest.fixture
def at_port(fake_serial, settings):
    """Open AtCommandPort without the observer thread."""
    port = AtCommandPort(settings,
                         capabilities=Capability.BLOCKING | Capability.NON_BLOCKING)
    port.open()
    yield port
    port.close()
