"""Unit tests for the atlink exception hierarchy."""

import pytest

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


class TestHierarchy:
    """Test inheritance relationships."""

    @pytest.mark.parametrize("exc_class", [
        InvalidStateError,
        LinkError,
        LinkBusyError,
        LinkPermissionError,
        ConnectionTimeoutError,
        ResponseTimeoutError,
        OperationCanceledError,
        ArgumentError,
        ConfigError,
    ])
    def test_all_derive_from_base(self, exc_class):
        assert issubclass(exc_class, AtLinkError)

    @pytest.mark.parametrize("exc_class", [
        LinkBusyError,
        LinkPermissionError,
        ConnectionTimeoutError,
        ResponseTimeoutError,
    ])
    def test_link_errors(self, exc_class):
        assert issubclass(exc_class, LinkError)

    def test_value_errors(self):
        assert issubclass(ArgumentError, ValueError)
        assert issubclass(ConfigError, ValueError)

    def test_catch_with_base(self):
        with pytest.raises(AtLinkError):
            raise LinkBusyError("busy", "COM3")


class TestLinkError:
    """Test LinkError formatting."""

    def test_message_with_port(self):
        error = LinkError("Failed to write", "/dev/ttyUSB0")

        assert error.port == "/dev/ttyUSB0"
        assert error.os_error is None
        assert str(error) == "Failed to write (port: /dev/ttyUSB0)"

    def test_message_with_cause(self):
        cause = OSError("device disconnected")
        error = LinkError("Failed to read", "COM3", cause)

        assert error.os_error is cause
        assert str(error) == "Failed to read (port: COM3, cause: device disconnected)"


class TestResponseTimeoutError:
    """Test ResponseTimeoutError attributes."""

    def test_attributes(self):
        error = ResponseTimeoutError("No response", "COM3", 2.0, partial="\r\n+CSQ")

        assert error.timeout == 2.0
        assert error.partial == "\r\n+CSQ"
        assert error.port == "COM3"
        assert not isinstance(error, OSError)

    def test_partial_defaults_empty(self):
        assert ResponseTimeoutError("No response", "COM3", 1.0).partial == ""


class TestOperationCanceledError:
    """Test OperationCanceledError defaults."""

    def test_default_message(self):
        assert str(OperationCanceledError()) == "Operation was canceled"


class TestConfigError:
    """Test ConfigError formatting."""

    def test_lists_errors(self):
        error = ConfigError("Invalid configuration", ["first", "second"])

        assert error.errors == ["first", "second"]
        assert str(error) == "Invalid configuration\n  - first\n  - second"

    def test_without_errors(self):
        error = ConfigError("Missing file")
        assert error.errors == []
        assert str(error) == "Missing file"
