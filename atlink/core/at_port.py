"""Unified AT command port.

AtCommandPort is the single contract for all operating modes over one
physical link. Capabilities are tagged with a Flag: blocking entry points,
asyncio entry points (``*_async``) and background observation can each
be enabled or disabled per port.
"""

from enum import Flag
from typing import Callable, Optional, Union, TYPE_CHECKING
import asyncio
import logging
import time

from atlink.core.cancellation import CancellationToken
from atlink.core.commands import Command, CommandBatch, ValueLike
from atlink.core.exceptions import (
    AtLinkError,
    InvalidStateError,
    OperationCanceledError,
)
from atlink.core.exchange_result import DataEvent, Direction, ExchangeResult
from atlink.core.framer import DeviceProfile, ResponseFramer, CompletionMode
from atlink.core.link_session import LinkSession, LinkSettings
from atlink.core.observer import Observer

if TYPE_CHECKING:
    from atlink.config.config_models import Config
    from atlink.logging.communication_logger import CommunicationLogger

logger = logging.getLogger(__name__)

Request = Union[str, Command, CommandBatch]


class Capability(Flag):
    """Operating modes enabled on a port."""
    BLOCKING = 1
    NON_BLOCKING = 2
    OBSERVABLE = 4
    ALL = BLOCKING | NON_BLOCKING | OBSERVABLE


class AtCommandPort:
    """Command/response port for AT-speaking devices.

    One exchange is in flight per port at a time: concurrent calls queue
    behind an internal lock. The observer (when enabled) only delivers
    output that arrives while no exchange owns the link.

    Example:
        >>> port = AtCommandPort(LinkSettings('/dev/ttyUSB0'))
        >>> port.add_listener(lambda event: print('URC:', event.text))
        >>> port.open()
        >>> port.read_command('+CREG')
        '+CREG: 0,1\\r\\nOK'
        >>> port.close()
    """

    def __init__(self,
                 settings: LinkSettings,
                 profile: Optional[DeviceProfile] = None,
                 capabilities: Capability = Capability.ALL,
                 comm_logger: Optional['CommunicationLogger'] = None,
                 completion_mode: CompletionMode = CompletionMode.TERMINATOR,
                 stability_window: float = 0.05,
                 settle_window: float = 0.05):
        """Initialize port.

        Args:
            settings: Link configuration
            profile: Device terminator profile (default: generic)
            capabilities: Enabled operating modes
            comm_logger: Optional CommunicationLogger
            completion_mode: Primary completion strategy for responses
            stability_window: Window for the STABILITY strategy
            settle_window: Window the observer waits for unsolicited data to settle
        """
        self.capabilities = capabilities
        self.comm_logger = comm_logger
        framer = ResponseFramer(
            newline=settings.newline,
            profile=profile,
            mode=completion_mode,
            stability_window=stability_window,
            poll_interval=settings.poll_interval,
            encoding=settings.encoding
        )
        self.session = LinkSession(settings, framer=framer, comm_logger=comm_logger)
        self.observer = Observer(self.session, settle_window=settle_window,
                                 comm_logger=comm_logger)

    @classmethod
    def from_config(cls,
                    config: 'Config',
                    port: Optional[str] = None,
                    capabilities: Capability = Capability.ALL,
                    comm_logger: Optional['CommunicationLogger'] = None) -> 'AtCommandPort':
        """Build a port from loaded configuration.

        Args:
            config: Loaded Config
            port: Override the configured port name
            capabilities: Enabled operating modes
            comm_logger: Optional CommunicationLogger

        Returns:
            Configured, closed AtCommandPort
        """
        from atlink.config.config_loader import build_link_settings, build_profile

        if not config.observer.enabled:
            capabilities &= ~Capability.OBSERVABLE

        return cls(
            build_link_settings(config, port=port),
            profile=build_profile(config),
            capabilities=capabilities,
            comm_logger=comm_logger,
            completion_mode=config.framer.completion_mode,
            stability_window=config.framer.stability_window,
            settle_window=config.observer.settle_window
        )

    @property
    def port(self) -> str:
        return self.session.port

    @property
    def is_open(self) -> bool:
        return self.session.is_open

    @property
    def receiving(self) -> bool:
        return self.session.receiving

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def _require(self, capability: Capability) -> None:
        if capability not in self.capabilities:
            raise InvalidStateError(
                f"Port {self.port} was created without {capability.name} capability"
            )

    # -- lifecycle -------------------------------------------------------

    def open(self) -> None:
        """Open the link and start the observer when OBSERVABLE."""
        self.session.open()
        if self.supports(Capability.OBSERVABLE):
            self.observer.start()

    def close(self) -> None:
        """Stop the observer and close the link."""
        self.observer.stop()
        self.session.close()

    def try_open(self) -> bool:
        try:
            self.open()
            return True
        except AtLinkError:
            return False

    def try_close(self) -> bool:
        try:
            self.close()
            return True
        except AtLinkError:
            return False

    async def open_async(self) -> None:
        await self._run_blocking(self.open)

    async def close_async(self) -> None:
        await self._run_blocking(self.close)

    async def try_open_async(self) -> bool:
        self._require(Capability.NON_BLOCKING)
        try:
            await self.open_async()
            return True
        except AtLinkError:
            return False

    async def try_close_async(self) -> bool:
        self._require(Capability.NON_BLOCKING)
        try:
            await self.close_async()
            return True
        except AtLinkError:
            return False

    def discard_in_buffer(self) -> None:
        self.session.discard_in_buffer()

    def discard_out_buffer(self) -> None:
        self.session.discard_out_buffer()

    def discard_buffer(self) -> None:
        self.session.discard_buffer()

    async def discard_in_buffer_async(self) -> None:
        await self._run_blocking(self.session.discard_in_buffer)

    async def discard_out_buffer_async(self) -> None:
        await self._run_blocking(self.session.discard_out_buffer)

    async def discard_buffer_async(self) -> None:
        await self._run_blocking(self.session.discard_buffer)

    async def _run_blocking(self, operation, *args):
        self._require(Capability.NON_BLOCKING)
        return await asyncio.get_running_loop().run_in_executor(None, operation, *args)

    # -- observation -----------------------------------------------------

    def add_listener(self, listener: Callable[[DataEvent], None]) -> None:
        """Register a callback for unsolicited data."""
        self._require(Capability.OBSERVABLE)
        self.observer.add_listener(listener)

    def remove_listener(self, listener: Callable[[DataEvent], None]) -> None:
        self.observer.remove_listener(listener)

    # -- exchanges -------------------------------------------------------

    def exchange(self,
                 request: Request,
                 timeout: Optional[float] = None,
                 cancel_token: Optional[CancellationToken] = None) -> ExchangeResult:
        """Write a request and wait for its response.

        Failures after the request was accepted are captured in the
        returned result rather than raised; the result keeps the sent
        request as its inner result.

        Args:
            request: Wire text, Command or CommandBatch
            timeout: Response deadline (default: settings.read_timeout)
            cancel_token: Cooperative cancellation signal

        Returns:
            RECEIVED ExchangeResult whose inner result is the SENT request

        Raises:
            InvalidStateError: Port not open or BLOCKING not enabled
            OperationCanceledError: cancel_token was already canceled
        """
        self._require(Capability.BLOCKING)
        text = _to_wire(request)
        self._check_ready(cancel_token)

        with self.session.exclusive():
            start = time.monotonic()
            try:
                self.session.write_request(text)
            except InvalidStateError:
                raise
            except AtLinkError as e:
                return self._failed_send(text, e, start)
            sent = ExchangeResult.sent(text, elapsed=time.monotonic() - start)

            start = time.monotonic()
            try:
                response = self.session.read_response(cancel_token=cancel_token,
                                                      timeout=timeout)
            except AtLinkError as e:
                return self._failed_receive(sent, e, start)
            return self._received(sent, response, start)

    async def exchange_async(self,
                             request: Request,
                             timeout: Optional[float] = None,
                             cancel_token: Optional[CancellationToken] = None) -> ExchangeResult:
        """Coroutine variant of exchange().

        The write runs in the default executor; the wait polls the link
        between event-loop turns and checks cancel_token every iteration.
        A canceled wait leaves late bytes unconsumed, so call
        ``discard_buffer()`` before reusing the port.
        """
        self._require(Capability.NON_BLOCKING)
        text = _to_wire(request)
        self._check_ready(cancel_token)

        async with self.session.exclusive_async(cancel_token):
            loop = asyncio.get_running_loop()
            start = time.monotonic()
            try:
                await loop.run_in_executor(None, self.session.write_request, text)
            except InvalidStateError:
                raise
            except AtLinkError as e:
                return self._failed_send(text, e, start)
            sent = ExchangeResult.sent(text, elapsed=time.monotonic() - start)

            start = time.monotonic()
            try:
                response = await self.session.read_response_async(
                    cancel_token=cancel_token, timeout=timeout)
            except AtLinkError as e:
                return self._failed_receive(sent, e, start)
            return self._received(sent, response, start)

    def get_response(self,
                     request: Request,
                     timeout: Optional[float] = None,
                     cancel_token: Optional[CancellationToken] = None) -> str:
        """Exchange and return only the response text.

        Raises:
            InvalidStateError: Port not open
            LinkError: I/O failure or ResponseTimeoutError
            OperationCanceledError: Cancellation observed
        """
        result = self.exchange(request, timeout=timeout, cancel_token=cancel_token)
        result.raise_for_error()
        return result.text

    async def get_response_async(self,
                                 request: Request,
                                 timeout: Optional[float] = None,
                                 cancel_token: Optional[CancellationToken] = None) -> str:
        """Coroutine variant of get_response()."""
        result = await self.exchange_async(request, timeout=timeout,
                                           cancel_token=cancel_token)
        result.raise_for_error()
        return result.text

    # -- one-way operations ----------------------------------------------

    def send_data(self, request: Request) -> ExchangeResult:
        """Write a request without waiting for a reply.

        Returns:
            SENT ExchangeResult; write failures are captured in it

        Raises:
            InvalidStateError: Port not open or BLOCKING not enabled
        """
        self._require(Capability.BLOCKING)
        text = _to_wire(request)
        self._check_ready(None)

        with self.session.exclusive():
            start = time.monotonic()
            try:
                self.session.write_request(text)
            except InvalidStateError:
                raise
            except AtLinkError as e:
                return self._failed_send(text, e, start)
            return ExchangeResult.sent(text, elapsed=time.monotonic() - start)

    def receive_data(self,
                     timeout: Optional[float] = None,
                     cancel_token: Optional[CancellationToken] = None) -> ExchangeResult:
        """Wait for the next complete reply without writing anything.

        Returns:
            RECEIVED ExchangeResult with no inner result; read failures
            are captured in it

        Raises:
            InvalidStateError: Port not open or BLOCKING not enabled
            OperationCanceledError: cancel_token was already canceled
        """
        self._require(Capability.BLOCKING)
        self._check_ready(cancel_token)

        with self.session.exclusive():
            start = time.monotonic()
            try:
                response = self.session.read_response(cancel_token=cancel_token,
                                                      timeout=timeout)
            except AtLinkError as e:
                return self._failed_receive(None, e, start)
            return self._received(None, response, start)

    async def send_data_async(self,
                              request: Request,
                              cancel_token: Optional[CancellationToken] = None) -> ExchangeResult:
        """Coroutine variant of send_data(); the write runs in the default executor."""
        self._require(Capability.NON_BLOCKING)
        text = _to_wire(request)
        self._check_ready(cancel_token)

        async with self.session.exclusive_async(cancel_token):
            start = time.monotonic()
            try:
                await asyncio.get_running_loop().run_in_executor(
                    None, self.session.write_request, text)
            except InvalidStateError:
                raise
            except AtLinkError as e:
                return self._failed_send(text, e, start)
            return ExchangeResult.sent(text, elapsed=time.monotonic() - start)

    async def receive_data_async(self,
                                 timeout: Optional[float] = None,
                                 cancel_token: Optional[CancellationToken] = None) -> ExchangeResult:
        """Coroutine variant of receive_data()."""
        self._require(Capability.NON_BLOCKING)
        self._check_ready(cancel_token)

        async with self.session.exclusive_async(cancel_token):
            start = time.monotonic()
            try:
                response = await self.session.read_response_async(
                    cancel_token=cancel_token, timeout=timeout)
            except AtLinkError as e:
                return self._failed_receive(None, e, start)
            return self._received(None, response, start)

    # -- command sugar ---------------------------------------------------

    def send_command(self, command: Command, **kwargs) -> str:
        return self.get_response(command, **kwargs)

    def send_commands(self, *commands: Command, **kwargs) -> str:
        return self.get_response(CommandBatch(commands), **kwargs)

    def test_command(self, name: str, **kwargs) -> str:
        return self.get_response(Command.test(name), **kwargs)

    def read_command(self, name: str, **kwargs) -> str:
        return self.get_response(Command.read(name), **kwargs)

    def set_command(self, name: str, *values: ValueLike, **kwargs) -> str:
        return self.get_response(Command.set(name, *values), **kwargs)

    def execute_command(self, name: str, **kwargs) -> str:
        return self.get_response(Command.execute(name), **kwargs)

    async def send_command_async(self, command: Command, **kwargs) -> str:
        return await self.get_response_async(command, **kwargs)

    async def send_commands_async(self, *commands: Command, **kwargs) -> str:
        return await self.get_response_async(CommandBatch(commands), **kwargs)

    async def test_command_async(self, name: str, **kwargs) -> str:
        return await self.get_response_async(Command.test(name), **kwargs)

    async def read_command_async(self, name: str, **kwargs) -> str:
        return await self.get_response_async(Command.read(name), **kwargs)

    async def set_command_async(self, name: str, *values: ValueLike, **kwargs) -> str:
        return await self.get_response_async(Command.set(name, *values), **kwargs)

    async def execute_command_async(self, name: str, **kwargs) -> str:
        return await self.get_response_async(Command.execute(name), **kwargs)

    # -- helpers ---------------------------------------------------------

    def _check_ready(self, cancel_token: Optional[CancellationToken]) -> None:
        if cancel_token is not None:
            cancel_token.raise_if_canceled()
        if not self.session.is_open:
            raise InvalidStateError(f"Port {self.port} is not open")

    def _failed_send(self, text: str, error: Exception, start: float) -> ExchangeResult:
        logger.debug("Write of %r to %s failed: %s", text, self.port, error)
        return ExchangeResult.failure(Direction.SENT, error, text=text,
                                      elapsed=time.monotonic() - start)

    def _failed_receive(self, sent: Optional[ExchangeResult], error: Exception,
                        start: float) -> ExchangeResult:
        elapsed = time.monotonic() - start
        if self.comm_logger:
            self.comm_logger.log_response(
                port=self.port,
                response="",
                status="CANCELED" if isinstance(error, OperationCanceledError) else "ERROR",
                execution_time=elapsed,
                command=sent.text if sent else None,
                error=str(error)
            )
        return ExchangeResult.failure(Direction.RECEIVED, error, inner=sent,
                                      elapsed=elapsed)

    def _received(self, sent: Optional[ExchangeResult], response: str,
                  start: float) -> ExchangeResult:
        elapsed = time.monotonic() - start
        if self.comm_logger:
            self.comm_logger.log_response(
                port=self.port,
                response=response,
                status="SUCCESS",
                execution_time=elapsed,
                command=sent.text if sent else None
            )
        return ExchangeResult.received(response, inner=sent, elapsed=elapsed)

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        status = "open" if self.is_open else "closed"
        return (f"AtCommandPort(port='{self.port}', "
                f"capabilities={self.capabilities}, status={status})")


def _to_wire(request: Request) -> str:
    if isinstance(request, (Command, CommandBatch)):
        return request.to_wire()
    return request
