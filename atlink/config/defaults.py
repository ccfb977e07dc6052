"""Default configuration values for zero-config operation.

This module provides sensible defaults for all configuration sections,
allowing a port to be built without an atlink.yaml file.
"""

from atlink.config.config_models import (
    Config,
    LinkConfig,
    FramerConfig,
    ObserverConfig,
    LoggingConfig,
    LogLevel
)
from atlink.core.framer import CompletionMode
from atlink.core.link_session import Handshake, Parity, StopBits


def get_default_config() -> Config:
    """Get default configuration.

    Default Values:
        - Link: 115200 8N1, no flow control, DTR/RTS asserted, CRLF, latin-1
        - Framer: generic profile (OK / ERROR / "> "), terminator matching
        - Observer: enabled, 50 ms settle window
        - Logging: INFO level, console output, no file
    """
    return Config(
        link=LinkConfig(
            port=None,  # Must be supplied by file, environment or caller
            baud_rate=115200,  # Common default for modern cellular modules
            data_bits=8,
            parity=Parity.NONE,
            stop_bits=StopBits.ONE,
            handshake=Handshake.NONE,
            dtr_enable=True,  # Many modems ignore commands while DTR is low
            rts_enable=True,
            read_timeout=None,
            write_timeout=None,
            newline="\r\n",
            encoding="latin-1",
            poll_interval=0.001,
            discard_before_write=False
        ),
        framer=FramerConfig(
            profile="generic",
            completion_mode=CompletionMode.TERMINATOR,
            stability_window=0.05,
            final_results=None,
            error_prefixes=None,
            prompt_enabled=True
        ),
        observer=ObserverConfig(
            enabled=True,
            settle_window=0.05
        ),
        logging=LoggingConfig(
            level=LogLevel.INFO,
            file_path=None,
            console_output=True,
            max_file_size_mb=10,
            backup_count=5,
            buffer_size=1000
        )
    )
