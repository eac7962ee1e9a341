"""Parser for SMAPI log text."""

import re
from typing import Iterator

from .models import Level, Message, Timestamp


# SMAPI log format:
#
#   "[HH:MM:SS LEVEL source] first line of message"
#   Example: "[13:45:23 INFO SMAPI] Loaded 42 mods"
#
# Any line that is not a header continues the previous message, so
# stack traces and multi-line dumps belong to the message above them:
#
#   [13:45:24 ERROR Mod.A] Boom
#   System.Exception: Boom
#      at Mod.A.Entry()

# Regex for a message header line
# Format: "[HH:MM:SS LEVEL source] contents"
HEADER_PATTERN = re.compile(
    r"^\[[ \t]*"
    r"(?P<hour>[0-9]+):(?P<minute>[0-9]+):(?P<second>[0-9]+)[ \t]+"
    r"(?P<level>TRACE|DEBUG|INFO|ALERT|WARN|ERROR)[ \t]+"
    r"(?P<source>[^\]]+)\] "
    r"(?P<contents>.*)$"
)

# Timestamp fields are stored as unsigned bytes
MAX_TIMESTAMP_FIELD = 255
MAX_TIMESTAMP_DIGITS = len(str(MAX_TIMESTAMP_FIELD))


class LogParseError(Exception):
    """Error parsing SMAPI log text."""

    def __init__(self, message: str, line_number: int, line_content: str):
        self.line_number = line_number
        self.line_content = line_content
        super().__init__(f"Line {line_number}: {message}\n  Content: {line_content!r}")


def parse_header_line(line: str) -> Message | None:
    """Parse a single header line into a Message.

    Args:
        line: A single line from a SMAPI log, without its newline.

    Returns:
        A Message holding the first line of contents, or None if the
        line is not a header (and therefore a continuation line).
    """
    match = HEADER_PATTERN.match(line)
    if not match:
        return None

    timestamp = _build_timestamp(match)
    if timestamp is None:
        return None

    return Message(
        timestamp=timestamp,
        level=Level(match.group("level")),
        source=match.group("source"),
        contents=match.group("contents"),
    )


def _build_timestamp(match: re.Match[str]) -> Timestamp | None:
    """Build a Timestamp from a header match, or None if a field overflows."""
    groups = [match.group(name) for name in ("hour", "minute", "second")]
    # Long digit runs can never fit, and int() refuses very long ones
    if any(len(group.lstrip("0")) > MAX_TIMESTAMP_DIGITS for group in groups):
        return None
    fields = [int(group) for group in groups]
    if any(value > MAX_TIMESTAMP_FIELD for value in fields):
        return None
    return Timestamp(*fields)


def split_log_lines(text: str) -> Iterator[str]:
    """Split log text into lines.

    A trailing newline does not start another line, a final line
    without a newline is still yielded, and a trailing carriage return
    is removed from each line.

    Args:
        text: Raw log text.

    Yields:
        Each line without its line terminator.
    """
    if not text:
        return

    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()

    for line in lines:
        yield line[:-1] if line.endswith("\r") else line


def parse_smapi_lines(lines: Iterator[str]) -> list[Message]:
    """Parse SMAPI log lines into messages.

    Continuation lines are folded into the preceding message before it
    is emitted, so messages come out in the order of their headers.

    Args:
        lines: Iterator of log lines without line terminators.

    Returns:
        List of Message objects in document order.

    Raises:
        LogParseError: If a continuation line has no message to continue.
    """
    messages: list[Message] = []
    current: Message | None = None
    continued: list[str] = []

    for line_number, line in enumerate(lines, start=1):
        message = parse_header_line(line)
        if message is not None:
            if current is not None:
                messages.append(_join_contents(current, continued))
            current = message
            continued = []
            continue

        if current is None:
            raise LogParseError("no message to continue", line_number, line)
        continued.append(line)

    if current is not None:
        messages.append(_join_contents(current, continued))

    return messages


def _join_contents(message: Message, continued: list[str]) -> Message:
    """Fold continuation lines into a message's contents."""
    if not continued:
        return message

    return Message(
        timestamp=message.timestamp,
        level=message.level,
        source=message.source,
        contents="\n".join([message.contents, *continued]),
    )


def parse_smapi_text(text: str) -> list[Message]:
    """Parse SMAPI log text into messages.

    Parsing is all-or-nothing: any malformed document fails as a whole.

    Args:
        text: Complete SMAPI log text.

    Returns:
        List of Message objects in document order.

    Raises:
        LogParseError: If the text starts with a continuation line.
    """
    return parse_smapi_lines(split_log_lines(text))
