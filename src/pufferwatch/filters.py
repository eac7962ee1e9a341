"""Level and source filters for a log."""

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from .log import Log
from .models import FilterConfig, Level, Message


@dataclass
class LogFilters:
    """Which levels and sources are shown.

    Every level always has a flag. Sources have a flag for each distinct
    source of the log the filters were last reconciled against, kept in
    sorted order so a filter list doesn't reorder between reloads.

    Attributes:
        levels: Enabled flag per level, in display order.
        sources: Enabled flag per source name, sorted by name.
        hidden_sources: Names that start disabled when first seen.
    """
    levels: dict[Level, bool] = field(
        default_factory=lambda: {level: True for level in Level}
    )
    sources: dict[str, bool] = field(default_factory=dict)
    hidden_sources: frozenset[str] = frozenset()

    @classmethod
    def for_log(cls, log: Log, config: FilterConfig | None = None) -> "LogFilters":
        """Create filters for a log, everything enabled unless configured.

        Args:
            log: The log whose sources get flags.
            config: Levels and sources to hide initially.
        """
        config = config or FilterConfig()
        filters = cls(
            levels={level: level not in config.hidden_levels for level in Level},
            hidden_sources=frozenset(config.hidden_sources),
        )
        return filters.reconcile(log)

    def level_enabled(self, level: Level) -> bool:
        """Check if a level is shown. Unknown levels are shown."""
        return self.levels.get(level, True)

    def source_enabled(self, source: str) -> bool:
        """Check if a source is shown. Unknown sources are shown."""
        return self.sources.get(source, True)

    def is_visible(self, message: Message) -> bool:
        return self.level_enabled(message.level) and self.source_enabled(message.source)

    def apply(self, log: Log) -> Iterator[Message]:
        """Lazily yield the messages of a log that pass the filters."""
        return (message for message in log.messages if self.is_visible(message))

    def reconcile(self, log: Log) -> "LogFilters":
        """Rebuild the source flags for a new log.

        Sources the new log shares with these filters keep their flag,
        sources seen for the first time are enabled unless configured as
        hidden, and sources the new log lacks are dropped.

        Args:
            log: The replacement log.

        Returns:
            New LogFilters; these filters are left unchanged.
        """
        sources = {
            source: self.sources.get(source, source not in self.hidden_sources)
            for source in sorted(log.sources)
        }
        return LogFilters(
            levels=dict(self.levels),
            sources=sources,
            hidden_sources=self.hidden_sources,
        )

    def set_level(self, level: Level, enabled: bool) -> None:
        self.levels[level] = enabled

    def toggle_level(self, level: Level) -> bool:
        """Flip a level's flag and return the new value."""
        self.levels[level] = not self.level_enabled(level)
        return self.levels[level]

    def set_source(self, source: str, enabled: bool) -> None:
        if source not in self.sources:
            raise KeyError(source)
        self.sources[source] = enabled

    def toggle_source(self, source: str) -> bool:
        """Flip a known source's flag and return the new value.

        Raises:
            KeyError: If the source isn't in the current log.
        """
        if source not in self.sources:
            raise KeyError(source)
        self.sources[source] = not self.sources[source]
        return self.sources[source]

    def set_all_levels(self, enabled: bool) -> None:
        for level in Level:
            self.levels[level] = enabled

    def set_all_sources(self, enabled: bool) -> None:
        for source in self.sources:
            self.sources[source] = enabled


class FilterStats:
    """Counts of shown and hidden messages.

    Useful for reporting how much of a log the filters hide.
    """

    def __init__(self) -> None:
        self.total_messages: int = 0
        self.displayed_messages: int = 0
        self.level_counts: dict[Level, int] = {}
        self.source_counts: dict[str, int] = {}

    def record(self, message: Message, displayed: bool) -> None:
        """Record one message in the stats."""
        self.total_messages += 1
        if not displayed:
            return

        self.displayed_messages += 1
        self.level_counts[message.level] = self.level_counts.get(message.level, 0) + 1
        self.source_counts[message.source] = self.source_counts.get(message.source, 0) + 1

    def record_all(self, messages: Iterable[Message], filters: LogFilters) -> None:
        for message in messages:
            self.record(message, filters.is_visible(message))

    @property
    def hidden_messages(self) -> int:
        return self.total_messages - self.displayed_messages

    @property
    def filter_rate(self) -> float:
        """Calculate the percentage of messages that were hidden."""
        if self.total_messages == 0:
            return 0.0
        return (self.hidden_messages / self.total_messages) * 100

    def summary(self) -> str:
        """Generate a summary string of filter stats."""
        lines = [
            f"Total messages: {self.total_messages}",
            f"Displayed: {self.displayed_messages}",
            f"Hidden: {self.hidden_messages} ({self.filter_rate:.1f}%)",
        ]

        if self.level_counts:
            lines.append("\nDisplayed by level:")
            for level in Level:
                if level in self.level_counts:
                    lines.append(f"  {level}: {self.level_counts[level]}")

        if self.source_counts:
            lines.append("\nDisplayed by source:")
            for source, count in sorted(
                self.source_counts.items(),
                key=lambda x: x[1],
                reverse=True,
            ):
                lines.append(f"  {source}: {count}")

        return "\n".join(lines)
