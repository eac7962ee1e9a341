"""Immutable log model built from raw SMAPI log text."""

from pathlib import Path
from types import MappingProxyType
from typing import BinaryIO, Mapping, TextIO

from .models import Message
from .parser_smapi import parse_smapi_text


class Log:
    """A parsed SMAPI log.

    A Log owns the raw text it was built from and the views derived from
    it: the messages in document order and the messages grouped by
    source. None of these change after construction. New content always
    means a new Log, so anything holding a Log can keep reading it while
    a replacement is being built.

    Use Log.empty(), Log.from_text(), Log.from_reader() or
    Log.from_file() rather than calling the constructor directly.
    """

    __slots__ = ("_raw", "_messages", "_by_source")

    def __init__(self, raw: str, messages: list[Message]) -> None:
        self._raw = raw
        self._messages = tuple(messages)

        groups: dict[str, list[Message]] = {}
        for message in self._messages:
            groups.setdefault(message.source, []).append(message)

        self._by_source: Mapping[str, tuple[Message, ...]] = MappingProxyType(
            {source: tuple(groups[source]) for source in sorted(groups)}
        )

    @classmethod
    def empty(cls) -> "Log":
        """Create a log with no text and no messages."""
        return cls("", [])

    @classmethod
    def from_text(cls, raw: str) -> "Log":
        """Parse raw log text.

        Raises:
            LogParseError: If the text is not a valid SMAPI log.
        """
        return cls(raw, parse_smapi_text(raw))

    @classmethod
    def from_reader(cls, stream: TextIO | BinaryIO) -> "Log":
        """Read a stream to completion and parse it.

        Byte streams are decoded as UTF-8, with or without a BOM.

        Raises:
            OSError: If reading fails.
            UnicodeDecodeError: If a byte stream is not valid UTF-8.
            LogParseError: If the text is not a valid SMAPI log.
        """
        data = stream.read()
        if isinstance(data, bytes):
            data = data.decode("utf-8-sig")
        return cls.from_text(data)

    @classmethod
    def from_file(cls, path: Path) -> "Log":
        """Read and parse a log file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            OSError: If the file can't be read.
            LogParseError: If the file is not a valid SMAPI log.
        """
        with open(path, "rb") as f:
            return cls.from_reader(f)

    @property
    def raw(self) -> str:
        return self._raw

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._messages

    @property
    def sources(self) -> tuple[str, ...]:
        """Distinct source names, sorted."""
        return tuple(self._by_source)

    @property
    def by_source(self) -> Mapping[str, tuple[Message, ...]]:
        return self._by_source

    def messages_from(self, source: str) -> tuple[Message, ...]:
        """Messages written by one source, in document order."""
        return self._by_source.get(source, ())

    def __len__(self) -> int:
        return len(self._messages)

    def __repr__(self) -> str:
        return f"Log(messages={len(self._messages)}, sources={len(self._by_source)})"
