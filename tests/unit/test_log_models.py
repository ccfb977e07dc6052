"""Unit tests for LogEntry."""

from datetime import datetime
import json

import pytest

from atlink.logging.log_models import LogEntry


@pytest.fixture
def entry():
    return LogEntry(
        timestamp=datetime(2025, 1, 12, 10, 30, 15, 234000),
        level="INFO",
        source="AtCommandPort",
        message="Received response",
        port="COM3",
        request="AT+CSQ",
        response="+CSQ: 20,99\r\nOK",
        status="SUCCESS",
        execution_time=0.052
    )


class TestLogEntry:
    """Test LogEntry formatting and serialization."""

    def test_to_string(self, entry):
        assert entry.to_string() == (
            "2025-01-12 10:30:15.234 | INFO    | AtCommandPort   | Received response"
            " | REQ: AT+CSQ | RESP: '+CSQ: 20,99\\r\\nOK' | STATUS: SUCCESS | TIME: 0.052s"
        )

    def test_to_string_minimal(self):
        entry = LogEntry(datetime(2025, 1, 12, 10, 30, 15), "DEBUG", "LinkSession", "Port opened")
        assert entry.to_string() == "2025-01-12 10:30:15.000 | DEBUG   | LinkSession     | Port opened"

    def test_to_string_error(self):
        entry = LogEntry(datetime(2025, 1, 12), "ERROR", "LinkSession", "Error occurred",
                         error="Failed to open port")
        assert entry.to_string().endswith("| ERROR: Failed to open port")

    def test_to_dict(self, entry):
        data = entry.to_dict()

        assert data["timestamp"] == "2025-01-12T10:30:15.234000"
        assert data["request"] == "AT+CSQ"
        assert data["details"] is None

    def test_dict_round_trip(self, entry):
        assert LogEntry.from_dict(entry.to_dict()) == entry

    def test_json(self, entry):
        data = json.loads(entry.to_json())

        assert data["status"] == "SUCCESS"
        assert LogEntry.from_json(entry.to_json()) == entry

    def test_from_dict_accepts_datetime(self, entry):
        data = entry.to_dict()
        data["timestamp"] = entry.timestamp
        assert LogEntry.from_dict(data).timestamp == entry.timestamp

    def test_immutable(self, entry):
        with pytest.raises(AttributeError):
            entry.level = "DEBUG"
