"""atlink - AT command request/response engine over serial links.

This package provides:
- A command model that builds correctly escaped AT command text
- Blocking and asyncio request/response exchanges with cancellation
- Response framing by final result codes or byte-count stability
- Background delivery of unsolicited device output
"""

# Core engine
from atlink.core import (
    AtCommandPort,
    Capability,
    CancellationToken,
    Command,
    CommandBatch,
    CommandKind,
    IntValue,
    StringValue,
    batch,
    DataEvent,
    Direction,
    ExchangeResult,
    CompletionMode,
    DeviceProfile,
    ResponseFramer,
    Handshake,
    LinkSession,
    LinkSettings,
    Parity,
    StopBits,
    Observer,
    AtLinkError,
    InvalidStateError,
    LinkError,
    ResponseTimeoutError,
    OperationCanceledError,
    ArgumentError,
    ConfigError,
)

# Configuration
from atlink.config import Config, load_config, get_default_config

# Logging
from atlink.logging import CommunicationLogger, LogEntry

__version__ = "0.1.0"

__all__ = [
    # Core
    "AtCommandPort",
    "Capability",
    "CancellationToken",
    "Command",
    "CommandBatch",
    "CommandKind",
    "IntValue",
    "StringValue",
    "batch",
    "DataEvent",
    "Direction",
    "ExchangeResult",
    "CompletionMode",
    "DeviceProfile",
    "ResponseFramer",
    "Handshake",
    "LinkSession",
    "LinkSettings",
    "Parity",
    "StopBits",
    "Observer",
    # Configuration
    "Config",
    "load_config",
    "get_default_config",
    # Logging
    "CommunicationLogger",
    "LogEntry",
    # Exceptions
    "AtLinkError",
    "InvalidStateError",
    "LinkError",
    "ResponseTimeoutError",
    "OperationCanceledError",
    "ArgumentError",
    "ConfigError",
]
