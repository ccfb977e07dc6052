"""AT command data model.

This module builds AT command text. Commands are immutable once built,
serialized once with ``to_wire()`` and discarded. Parameter values are
escaped so that strings survive the comma/quote delimited grammar:

    Execute: AT<name>
    Test:    AT<name>=?
    Read:    AT<name>?
    Set:     AT<name>=<v1>,<v2>,...      vi = digits | "escaped-string"
    Batch:   AT<body1>;<body2-without-AT>;...

Command names are not validated; a malformed name produces malformed wire
text and the device rejects it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Tuple, Union

from atlink.core.exceptions import ArgumentError

AT_PREFIX = "AT"

# Order matters: the backslash must be escaped first.
_ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
)


def escape_string(text: str) -> str:
    """Escape a string parameter and wrap it in double quotes.

    Args:
        text: Raw parameter text

    Returns:
        Quoted literal with backslash, quote, LF, CR and TAB escaped
    """
    for raw, escaped in _ESCAPES:
        text = text.replace(raw, escaped)
    return f'"{text}"'


class CommandKind(Enum):
    """AT command form."""
    TEST = "test"
    READ = "read"
    SET = "set"
    EXECUTE = "execute"


@dataclass(frozen=True)
class StringValue:
    """String command parameter, serialized as an escaped quoted literal."""
    text: str

    def __post_init__(self):
        if not isinstance(self.text, str):
            raise ArgumentError(f"StringValue requires str, got {type(self.text).__name__}")

    def to_wire(self) -> str:
        return escape_string(self.text)


@dataclass(frozen=True)
class IntValue:
    """Integer command parameter, serialized as bare decimal digits."""
    number: int

    def __post_init__(self):
        if isinstance(self.number, bool) or not isinstance(self.number, int):
            raise ArgumentError(f"IntValue requires int, got {type(self.number).__name__}")

    def to_wire(self) -> str:
        return str(self.number)


Value = Union[StringValue, IntValue]
ValueLike = Union[StringValue, IntValue, str, int]


def to_value(obj: ValueLike) -> Value:
    """Coerce a plain Python value into a command parameter.

    Args:
        obj: str, int, or an existing StringValue/IntValue

    Returns:
        StringValue or IntValue

    Raises:
        ArgumentError: Value is of an unsupported type (bool, float, None, ...)
    """
    if isinstance(obj, (StringValue, IntValue)):
        return obj
    if isinstance(obj, str):
        return StringValue(obj)
    if isinstance(obj, int) and not isinstance(obj, bool):
        return IntValue(obj)
    raise ArgumentError(
        f"Unsupported parameter type {type(obj).__name__}; use str or int"
    )


@dataclass(frozen=True)
class Command:
    """Immutable AT command.

    Attributes:
        name: Command name without the AT prefix (e.g., '+CSQ')
        kind: Test, Read, Set or Execute
        parameters: Ordered parameter values (Set only)

    Example:
        >>> Command.execute('+CSQ').to_wire()
        'AT+CSQ'
        >>> Command.set('+CPIN', '1234').to_wire()
        'AT+CPIN="1234"'
    """

    name: str
    kind: CommandKind = CommandKind.EXECUTE
    parameters: Tuple[Value, ...] = field(default_factory=tuple)

    @classmethod
    def test(cls, name: str) -> 'Command':
        return cls(name, CommandKind.TEST)

    @classmethod
    def read(cls, name: str) -> 'Command':
        return cls(name, CommandKind.READ)

    @classmethod
    def set(cls, name: str, *values: ValueLike) -> 'Command':
        return cls(name, CommandKind.SET, tuple(to_value(v) for v in values))

    @classmethod
    def execute(cls, name: str) -> 'Command':
        return cls(name, CommandKind.EXECUTE)

    @property
    def body(self) -> str:
        """Wire text without the leading AT prefix."""
        if self.kind == CommandKind.TEST:
            return f"{self.name}=?"
        if self.kind == CommandKind.READ:
            return f"{self.name}?"
        if self.kind == CommandKind.SET:
            return f"{self.name}=" + ",".join(v.to_wire() for v in self.parameters)
        return self.name

    def to_wire(self) -> str:
        return AT_PREFIX + self.body

    def __str__(self) -> str:
        return self.to_wire()


class CommandBatch:
    """Ordered sequence of commands sent as one line.

    Serializes as a single AT prefix followed by the command bodies
    joined with ';'.

    Example:
        >>> CommandBatch([Command.execute('+CSQ'), Command.read('+CREG')]).to_wire()
        'AT+CSQ;+CREG?'
    """

    def __init__(self, commands: Iterable[Command]):
        self.commands: Tuple[Command, ...] = tuple(commands)
        for command in self.commands:
            if not isinstance(command, Command):
                raise ArgumentError(
                    f"CommandBatch accepts Command items, got {type(command).__name__}"
                )

    def to_wire(self) -> str:
        return AT_PREFIX + ";".join(
            _strip_prefix(command.to_wire()) for command in self.commands
        )

    def __len__(self) -> int:
        return len(self.commands)

    def __iter__(self):
        return iter(self.commands)

    def __eq__(self, other) -> bool:
        if not isinstance(other, CommandBatch):
            return NotImplemented
        return self.commands == other.commands

    def __str__(self) -> str:
        return self.to_wire()

    def __repr__(self) -> str:
        return f"CommandBatch({list(self.commands)!r})"


def batch(*commands: Command) -> CommandBatch:
    """Build a CommandBatch from positional commands."""
    return CommandBatch(commands)


def _strip_prefix(wire: str) -> str:
    return wire[len(AT_PREFIX):] if wire.startswith(AT_PREFIX) else wire
