"""Unit tests for CommunicationLogger."""

from datetime import datetime
from logging.handlers import RotatingFileHandler
import logging

import pytest

from atlink.logging.communication_logger import CommunicationLogger
from atlink.logging.log_models import LogEntry
from atlink.config.config_models import LoggingConfig, LogLevel


class TestCommunicationLogger:
    """Test suite for CommunicationLogger class."""

    def test_logger_creation_file_only(self, tmp_path):
        """Test logger creation with file logging only."""
        log_file = tmp_path / "logs" / "comm.log"
        logger = CommunicationLogger(
            log_level=LogLevel.INFO,
            enable_file=True,
            enable_console=False,
            log_file_path=str(log_file)
        )

        assert logger.log_level == "INFO"
        assert len(logger._handlers) == 1
        assert isinstance(logger._handlers[0], RotatingFileHandler)
        assert log_file.parent.exists()

        logger.close()

    def test_logger_creation_console_only(self):
        """Test logger creation with console logging only."""
        logger = CommunicationLogger(log_level=LogLevel.DEBUG)

        assert logger.log_level == "DEBUG"
        assert len(logger._handlers) == 1
        assert isinstance(logger._handlers[0], logging.StreamHandler)

        logger.close()

    def test_logger_no_file_path_raises(self):
        """Test that enable_file=True without a path raises."""
        with pytest.raises(ValueError):
            CommunicationLogger(enable_file=True, log_file_path=None)

    def test_from_config(self, tmp_path):
        """Test building from LoggingConfig."""
        config = LoggingConfig(
            level=LogLevel.WARNING,
            file_path=str(tmp_path / "comm.log"),
            console_output=False,
            buffer_size=3
        )
        logger = CommunicationLogger.from_config(config)

        assert logger.log_level == "WARNING"
        assert logger.enable_file is True
        assert logger.enable_console is False
        assert logger._buffer.maxlen == 3

        logger.close()

    def test_log_level_filtering(self, tmp_path):
        """Entries below the configured level are dropped."""
        log_file = tmp_path / "comm.log"
        logger = CommunicationLogger(
            log_level=LogLevel.INFO,
            enable_file=True,
            enable_console=False,
            log_file_path=str(log_file)
        )

        logger.log(LogEntry(datetime.now(), "DEBUG", "Test", "Debug message"))
        logger.log(LogEntry(datetime.now(), "INFO", "Test", "Info message"))
        logger.log(LogEntry(datetime.now(), "ERROR", "Test", "Error message"))
        logger.close()

        content = log_file.read_text(encoding="utf-8")
        assert "Debug message" not in content
        assert "Info message" in content
        assert "Error message" in content
        assert [e.message for e in logger.get_entries()] == ["Info message", "Error message"]

    def test_console_output(self, capsys):
        """Console output goes to stderr."""
        logger = CommunicationLogger(log_level=LogLevel.DEBUG)
        logger.log_request(port="COM3", request="AT+CSQ")
        logger.close()

        captured = capsys.readouterr()
        assert "REQ: AT+CSQ" in captured.err

    def test_log_request(self):
        logger = CommunicationLogger(log_level=LogLevel.DEBUG, enable_console=False)
        logger.log_request(port="COM3", request="ATI")

        entry = logger.get_entries()[0]
        assert entry.level == "DEBUG"
        assert entry.source == "LinkSession"
        assert entry.port == "COM3"
        assert entry.request == "ATI"

    @pytest.mark.parametrize("status,level", [
        ("SUCCESS", "INFO"),
        ("CANCELED", "WARNING"),
        ("ERROR", "ERROR"),
    ])
    def test_log_response_levels(self, status, level):
        logger = CommunicationLogger(log_level=LogLevel.DEBUG, enable_console=False)
        logger.log_response(port="COM3", response="OK", status=status,
                            execution_time=0.05, command="AT")

        entry = logger.get_entries()[0]
        assert entry.level == level
        assert entry.status == status
        assert entry.request == "AT"
        assert entry.execution_time == 0.05

    def test_log_notification(self):
        logger = CommunicationLogger(enable_console=False)
        logger.log_notification(port="COM3", text="RING")

        entry = logger.get_entries()[0]
        assert entry.source == "Observer"
        assert entry.status == "NOTIFICATION"
        assert entry.response == "RING"

    def test_log_port_event(self):
        logger = CommunicationLogger(enable_console=False)
        logger.log_port_event("Port opened", "COM3", details={"baud_rate": 115200})

        entry = logger.get_entries()[0]
        assert entry.message == "Port opened"
        assert entry.details == {"baud_rate": 115200}

    def test_log_error(self):
        logger = CommunicationLogger(log_level=LogLevel.ERROR, enable_console=False)
        logger.log_error(source="LinkSession", error="Failed to open port")

        entry = logger.get_entries()[0]
        assert entry.level == "ERROR"
        assert entry.error == "Failed to open port"

    def test_set_level(self):
        logger = CommunicationLogger(log_level=LogLevel.ERROR, enable_console=False)
        logger.log_request(port="COM3", request="AT")
        logger.set_level(LogLevel.DEBUG)
        logger.log_request(port="COM3", request="ATI")

        assert [e.request for e in logger.get_entries()] == ["ATI"]

    def test_buffer_limit_and_clear(self):
        logger = CommunicationLogger(enable_console=False, buffer_size=2)
        for i in range(3):
            logger.log_notification(port="COM3", text=f"URC {i}")

        assert [e.response for e in logger.get_entries()] == ["URC 1", "URC 2"]
        assert [e.response for e in logger.get_entries(limit=1)] == ["URC 2"]

        logger.clear_buffer()
        assert logger.get_entries() == []

    def test_file_rotation(self, tmp_path):
        log_file = tmp_path / "comm.log"
        logger = CommunicationLogger(
            enable_file=True,
            enable_console=False,
            log_file_path=str(log_file),
            max_file_size_mb=1,
            backup_count=2
        )
        handler = logger._handlers[0]

        assert handler.maxBytes == 1024 * 1024
        assert handler.backupCount == 2
        logger.close()

    def test_close_is_idempotent(self):
        logger = CommunicationLogger()
        logger.close()
        logger.close()
        logger.log_request(port="COM3", request="AT")

    def test_context_manager(self, tmp_path):
        log_file = tmp_path / "comm.log"
        with CommunicationLogger(enable_file=True, enable_console=False,
                                 log_file_path=str(log_file)) as logger:
            logger.log_port_event("Port opened", "COM3")

        assert "Port opened" in log_file.read_text(encoding="utf-8")
