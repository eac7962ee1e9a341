"""Console output of log messages."""

from typing import Iterable, Mapping

from rich.console import Console
from rich.text import Text

from .models import Level, Message

# Level to color mapping for rich output
LEVEL_STYLES: Mapping[Level, str] = {
    Level.TRACE: "dim",
    Level.DEBUG: "bright_black",
    Level.INFO: "white",
    Level.ALERT: "magenta",
    Level.WARN: "yellow",
    Level.ERROR: "red bold",
}


class LogPrinter:
    """Prints messages to a rich console.

    Attributes:
        console: Where output goes.
        styles: Style per level. Swap this to restyle without touching
            the log model.
        color: Whether to style output at all.
    """

    def __init__(
        self,
        console: Console | None = None,
        styles: Mapping[Level, str] | None = None,
        color: bool = True,
    ) -> None:
        self.console = console or Console()
        self.styles = styles if styles is not None else LEVEL_STYLES
        self.color = color

    def _print_text(self, text: str, level: Level) -> None:
        if self.color and level in self.styles:
            self.console.print(Text(text, style=self.styles[level]), highlight=False)
        else:
            self.console.print(text, highlight=False, markup=False)

    def print_message(self, message: Message) -> None:
        """Print a message the way it appears in the log."""
        self._print_text(f"{message.header()} {message.contents}", message.level)

    def print_lines(self, message: Message, lines: Iterable[str]) -> None:
        """Print extra continuation lines of an already printed message."""
        for line in lines:
            self._print_text(line, message.level)

    def print_messages(self, messages: Iterable[Message]) -> int:
        """Print messages and return how many were printed."""
        count = 0
        for message in messages:
            self.print_message(message)
            count += 1
        return count

    def print_reset(self, reason: str) -> None:
        self.console.rule(reason, style="dim")


class TailPrinter:
    """Prints only what changed since the last call to show().

    A log that grew by appending prints its new messages, plus any
    continuation lines added to the last printed message. Any other
    change is treated as a reset and the whole list is printed again.
    """

    def __init__(self, printer: LogPrinter) -> None:
        self.printer = printer
        self._printed: list[Message] = []

    def show(self, messages: Iterable[Message]) -> int:
        """Print the difference between messages and what was printed.

        Returns:
            Number of messages printed in full.
        """
        messages = list(messages)
        old = self._printed
        self._printed = messages

        common = 0
        for previous, current in zip(old, messages):
            if previous != current:
                break
            common += 1

        if common == len(old):
            return self.printer.print_messages(messages[common:])

        if (
            common == len(old) - 1
            and common < len(messages)
            and _grew(old[common], messages[common])
        ):
            grown = messages[common]
            extra = grown.lines[len(old[common].lines):]
            self.printer.print_lines(grown, extra)
            return self.printer.print_messages(messages[common + 1:])

        self.printer.print_reset("log reloaded")
        return self.printer.print_messages(messages)


def _grew(previous: Message, current: Message) -> bool:
    """Check if current is previous with continuation lines appended."""
    return (
        previous.timestamp == current.timestamp
        and previous.level == current.level
        and previous.source == current.source
        and current.contents.startswith(previous.contents + "\n")
    )
