"""Configuration data models for atlink.

This module defines immutable configuration dataclasses with sensible defaults
for zero-config operation. All dataclasses are frozen for immutability.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from atlink.core.framer import CompletionMode
from atlink.core.link_session import Handshake, Parity, StopBits


class LogLevel(Enum):
    """Logging level."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class LinkConfig:
    """Serial link configuration."""
    port: Optional[str] = None
    baud_rate: int = 115200
    data_bits: int = 8
    parity: Parity = Parity.NONE
    stop_bits: StopBits = StopBits.ONE
    handshake: Handshake = Handshake.NONE
    dtr_enable: bool = True
    rts_enable: bool = True
    read_timeout: Optional[float] = None  # seconds, None waits forever
    write_timeout: Optional[float] = None
    newline: str = "\r\n"
    encoding: str = "latin-1"
    poll_interval: float = 0.001
    discard_before_write: bool = False


@dataclass(frozen=True)
class FramerConfig:
    """Response framing configuration.

    ``final_results`` and ``error_prefixes`` replace the profile's values
    when set.
    """
    profile: str = "generic"
    completion_mode: CompletionMode = CompletionMode.TERMINATOR
    stability_window: float = 0.05
    final_results: Optional[List[str]] = None
    error_prefixes: Optional[List[str]] = None
    prompt_enabled: bool = True


@dataclass(frozen=True)
class ObserverConfig:
    """Unsolicited data observer configuration."""
    enabled: bool = True
    settle_window: float = 0.05


@dataclass(frozen=True)
class LoggingConfig:
    """Communication logging configuration."""
    level: LogLevel = LogLevel.INFO
    file_path: Optional[str] = None
    console_output: bool = True
    max_file_size_mb: int = 10
    backup_count: int = 5
    buffer_size: int = 1000


@dataclass(frozen=True)
class Config:
    """Complete configuration object with all sections."""
    link: LinkConfig = field(default_factory=LinkConfig)
    framer: FramerConfig = field(default_factory=FramerConfig)
    observer: ObserverConfig = field(default_factory=ObserverConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation with nested sections and enum values.
        """
        def convert_value(obj: Any) -> Any:
            if isinstance(obj, Parity):
                return obj.name.lower()
            elif isinstance(obj, Enum):
                return obj.value
            elif isinstance(obj, list):
                return [convert_value(item) for item in obj]
            elif isinstance(obj, dict):
                return {k: convert_value(v) for k, v in obj.items()}
            return obj

        return convert_value(asdict(self))
