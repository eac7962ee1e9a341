"""Data models for pufferwatch."""

from dataclasses import dataclass, field
from enum import Enum


class Level(Enum):
    """SMAPI log levels, in display order."""
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    ALERT = "ALERT"
    WARN = "WARN"
    ERROR = "ERROR"

    @classmethod
    def from_str(cls, value: str) -> "Level":
        """Parse a level from its keyword (case-insensitive)."""
        value = value.upper().strip()
        for level in cls:
            if level.value == value:
                return level
        raise ValueError(f"Unknown log level: {value}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, order=True)
class Timestamp:
    """Time of day a message was logged."""
    hour: int
    minute: int
    second: int

    def __str__(self) -> str:
        return f"{self.hour:02}:{self.minute:02}:{self.second:02}"


@dataclass(frozen=True)
class Message:
    """A parsed SMAPI log message.

    Attributes:
        timestamp: When the message was logged.
        level: Log level.
        source: The mod or component that wrote the message.
        contents: Message text. Continuation lines are joined with "\\n".
    """
    timestamp: Timestamp
    level: Level
    source: str
    contents: str

    @property
    def lines(self) -> list[str]:
        """The contents split back into its original lines."""
        return self.contents.split("\n")

    def header(self) -> str:
        """Format the header the way it appears in the log."""
        return f"[{self.timestamp} {self.level} {self.source}]"


# --- Filter Configuration ---

@dataclass
class FilterConfig:
    """Parsed .pufferignore configuration.

    Levels and sources listed here start out hidden. Sources are matched
    by name whenever they first appear in a log.
    """
    hidden_levels: set[Level] = field(default_factory=set)
    hidden_sources: set[str] = field(default_factory=set)

    def hide_level(self, level: Level) -> None:
        self.hidden_levels.add(level)

    def hide_source(self, source: str) -> None:
        self.hidden_sources.add(source)
