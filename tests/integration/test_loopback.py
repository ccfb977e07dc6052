"""Integration tests over a real pyserial loop:// transport.

The loop:// URL echoes every written byte back to the reader, so a request
that itself contains a final result line frames as a complete response.
"""

import asyncio
import time

import pytest

from atlink.core.at_port import AtCommandPort, Capability
from atlink.core.cancellation import CancellationToken
from atlink.core.exceptions import OperationCanceledError, ResponseTimeoutError
from atlink.core.link_session import LinkSession, LinkSettings
from atlink.logging.communication_logger import CommunicationLogger
from atlink.config.config_models import LogLevel

pytestmark = pytest.mark.integration


@pytest.fixture
def loop_settings():
    return LinkSettings("loop://", read_timeout=1.0)


class TestLoopbackSession:
    """LinkSession over loop://."""

    def test_open_close(self, loop_settings):
        session = LinkSession(loop_settings)
        session.open()
        session.open()
        assert session.is_open

        session.close()
        assert not session.is_open

    def test_echoed_request_frames_as_response(self, loop_settings):
        with LinkSession(loop_settings) as session:
            session.write_request("\r\nOK")
            assert session.read_response() == "OK"

    def test_timeout_without_terminator(self, loop_settings):
        with LinkSession(loop_settings) as session:
            session.write_request("AT+CSQ")
            with pytest.raises(ResponseTimeoutError) as exc_info:
                session.read_response(timeout=0.05)
            assert exc_info.value.partial == "AT+CSQ\r\n"

    def test_discard_buffer(self, loop_settings):
        with LinkSession(loop_settings) as session:
            session.write_request("garbage")
            time.sleep(0.02)
            session.discard_buffer()
            assert session.bytes_available() == 0


class TestLoopbackPort:
    """AtCommandPort over loop://."""

    def test_get_response(self, loop_settings):
        with AtCommandPort(loop_settings, capabilities=Capability.BLOCKING) as port:
            assert port.get_response("AT\r\n\r\nOK") == "AT\r\nOK"

    def test_error_terminator(self, loop_settings):
        with AtCommandPort(loop_settings, capabilities=Capability.BLOCKING) as port:
            result = port.exchange("AT+X\r\nERROR")

        assert not result.failed
        assert result.text == "AT+X\r\nERROR"
        assert result.request_text == "AT+X\r\nERROR"

    def test_async_exchange(self, loop_settings):
        port = AtCommandPort(loop_settings, capabilities=Capability.NON_BLOCKING)

        async def scenario():
            await port.open_async()
            try:
                return await port.get_response_async("\r\nOK")
            finally:
                await port.close_async()

        assert asyncio.run(scenario()) == "OK"

    def test_async_cancel_then_discard(self, loop_settings):
        port = AtCommandPort(loop_settings,
                             capabilities=Capability.BLOCKING | Capability.NON_BLOCKING)

        async def scenario():
            token = CancellationToken()
            task = asyncio.ensure_future(port.exchange_async("AT+COPS=?", cancel_token=token))
            await asyncio.sleep(0.02)
            token.cancel()
            return await task

        with port:
            result = asyncio.run(scenario())
            assert isinstance(result.error, OperationCanceledError)

            port.discard_buffer()
            assert port.get_response("\r\nOK") == "OK"

    def test_observer_sees_idle_data(self, loop_settings):
        events = []
        port = AtCommandPort(loop_settings, settle_window=0.01)
        port.add_listener(events.append)

        with port:
            port.session.write_request("\r\nRING")
            deadline = time.monotonic() + 2.0
            while not events and time.monotonic() < deadline:
                time.sleep(0.01)

        assert events and events[0].text == "RING"

    def test_communication_log(self, loop_settings):
        comm_logger = CommunicationLogger(log_level=LogLevel.DEBUG, enable_console=False)
        with AtCommandPort(loop_settings, capabilities=Capability.BLOCKING,
                           comm_logger=comm_logger) as port:
            port.get_response("\r\nOK")

        messages = [e.message for e in comm_logger.get_entries()]
        assert messages == ["Port opened", "Sent request", "Received response", "Port closed"]
