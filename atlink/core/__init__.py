"""Core AT command engine components.

This package provides the command model, the serial link session, response
framing, background observation and the unified AtCommandPort facade.
"""

from atlink.core.at_port import AtCommandPort, Capability
from atlink.core.cancellation import CancellationToken
from atlink.core.commands import (
    Command,
    CommandBatch,
    CommandKind,
    IntValue,
    StringValue,
    batch,
    escape_string
)
from atlink.core.exceptions import (
    AtLinkError,
    InvalidStateError,
    LinkError,
    LinkBusyError,
    LinkPermissionError,
    ConnectionTimeoutError,
    ResponseTimeoutError,
    OperationCanceledError,
    ArgumentError,
    ConfigError
)
from atlink.core.exchange_result import DataEvent, Direction, ExchangeResult
from atlink.core.framer import (
    BUILTIN_PROFILES,
    EXTENDED_PROFILE,
    GENERIC_PROFILE,
    CompletionMode,
    DeviceProfile,
    ResponseFramer
)
from atlink.core.link_session import Handshake, LinkSession, LinkSettings, Parity, StopBits
from atlink.core.observer import Observer

__all__ = [
    'AtCommandPort',
    'Capability',
    'CancellationToken',
    'Command',
    'CommandBatch',
    'CommandKind',
    'IntValue',
    'StringValue',
    'batch',
    'escape_string',
    'DataEvent',
    'Direction',
    'ExchangeResult',
    'BUILTIN_PROFILES',
    'EXTENDED_PROFILE',
    'GENERIC_PROFILE',
    'CompletionMode',
    'DeviceProfile',
    'ResponseFramer',
    'Handshake',
    'LinkSession',
    'LinkSettings',
    'Parity',
    'StopBits',
    'Observer',
    'AtLinkError',
    'InvalidStateError',
    'LinkError',
    'LinkBusyError',
    'LinkPermissionError',
    'ConnectionTimeoutError',
    'ResponseTimeoutError',
    'OperationCanceledError',
    'ArgumentError',
    'ConfigError',
]
