"""Holds the current log and filters, swapping in new logs from a source."""

import logging
from typing import Iterator

from .filters import LogFilters
from .log import Log
from .models import FilterConfig, Level, Message
from .sources import LogSource

logger = logging.getLogger(__name__)


class LogView:
    """The log and filters a presentation layer reads from.

    refresh() asks the source for a replacement and, if there is one,
    replaces the held log as a whole and reconciles the filters with it.
    Readers holding the previous log keep a complete, consistent object;
    they never see one that is half built.

    Attributes:
        source: Where replacement logs come from.
    """

    def __init__(
        self,
        source: LogSource,
        filters_config: FilterConfig | None = None,
        log: Log | None = None,
    ) -> None:
        self.source = source
        self._log = log if log is not None else Log.empty()
        self._filters = LogFilters.for_log(self._log, filters_config)

    @property
    def log(self) -> Log:
        """The current log."""
        return self._log

    @property
    def filters(self) -> LogFilters:
        return self._filters

    def refresh(self) -> bool:
        """Poll the source once and apply at most one replacement.

        Returns:
            True if the log was replaced.
        """
        new_log = self.source.poll(self._log)
        if new_log is None:
            return False

        self._filters = self._filters.reconcile(new_log)
        self._log = new_log
        logger.debug("log replaced: %r", new_log)
        return True

    def visible_messages(self) -> Iterator[Message]:
        """Messages of the current log that pass the filters."""
        return self._filters.apply(self._log)

    def toggle_level(self, level: Level) -> bool:
        return self._filters.toggle_level(level)

    def toggle_source(self, source: str) -> bool:
        return self._filters.toggle_source(source)
