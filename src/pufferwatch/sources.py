"""Log sources that produce replacement logs over time.

Every source exposes one operation, poll(previous), which never waits
for new input. It returns a new Log when one is ready, or None when
nothing changed. The first poll of a static, remote or followed source
returns the log it built on construction, so a consumer can start from
Log.empty().

Sources that follow live input read it on background threads and hand
results to poll() through a queue. Closing a source stops and joins
those threads.
"""

import codecs
import logging
import os
import queue
import sys
import threading
from enum import Enum, auto
from pathlib import Path
from typing import BinaryIO, Protocol, TextIO

import requests
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers.polling import PollingObserver

from .log import Log
from .parser_smapi import LogParseError

logger = logging.getLogger(__name__)

# Seconds between stat checks of a followed file
DEFAULT_POLL_INTERVAL = 2.0

# Pending file changes kept for poll(); older intents are dropped first
DEFAULT_MAX_PENDING_CHANGES = 8

# Seconds to wait for a reader thread blocked in readline()
DEFAULT_JOIN_TIMEOUT = 1.0

DEFAULT_REMOTE_TIMEOUT = 30.0


class WatchError(Exception):
    """A file could not be registered with the file watcher."""


class NetworkError(Exception):
    """A remote log could not be fetched."""


class LogSource(Protocol):
    """A pollable provider of replacement logs."""

    def poll(self, previous: Log) -> Log | None:
        ...

    def close(self) -> None:
        ...


class _ClosingContext:
    """Context manager support for sources with a close() method."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions

    def close(self) -> None:
        pass


class _PendingLogSource(_ClosingContext):
    """A source holding one log that its first poll hands over."""

    def __init__(self, log: Log) -> None:
        self.initial_log = log
        self._pending: Log | None = log

    def poll(self, previous: Log) -> Log | None:
        log, self._pending = self._pending, None
        return log


# --- Static ---

class StaticLogSource(_PendingLogSource):
    """A log that is read once and never changes.

    Usage:
        source = StaticLogSource.from_file(Path("SMAPI-latest.txt"))
        log = source.poll(Log.empty())  # the parsed log
        source.poll(log)                # None from now on
    """

    @classmethod
    def from_file(cls, path: Path) -> "StaticLogSource":
        """Read and parse a log file.

        Raises:
            OSError: If the file can't be read.
            LogParseError: If the file is not a valid SMAPI log.
        """
        return cls(Log.from_file(path))

    @classmethod
    def from_text(cls, raw: str) -> "StaticLogSource":
        """Parse log text held in memory.

        Raises:
            LogParseError: If the text is not a valid SMAPI log.
        """
        return cls(Log.from_text(raw))


# --- Remote ---

class RemoteLogSource(_PendingLogSource):
    """A log downloaded once over HTTP.

    The fetch happens in the constructor; afterwards the source behaves
    like a StaticLogSource.
    """

    def __init__(
        self,
        url: str,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_REMOTE_TIMEOUT,
    ) -> None:
        """Fetch and parse a remote log.

        Args:
            url: URL of the raw log text.
            session: HTTP session to use. Defaults to a one-off request.
            timeout: Request timeout in seconds.

        Raises:
            NetworkError: If the request fails or returns an error status.
            LogParseError: If the body is not a valid SMAPI log.
        """
        self.url = url
        super().__init__(Log.from_text(fetch_log_text(url, session, timeout)))


def fetch_log_text(
    url: str,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_REMOTE_TIMEOUT,
) -> str:
    """Download log text with a single GET request.

    Raises:
        NetworkError: If the request fails or returns an error status.
    """
    logger.info("fetching remote log from %s", url)
    client = session if session is not None else requests
    try:
        response = client.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise NetworkError(f"error retrieving remote log: {e}") from e

    # Without an explicit charset requests falls back to latin-1
    if "charset" not in response.headers.get("Content-Type", "").lower():
        response.encoding = "utf-8"

    text = response.text
    return text[1:] if text.startswith("\ufeff") else text


# --- Followed file ---

class FileChange(Enum):
    """What happened to a followed file."""
    UPDATED = auto()
    REMOVED = auto()


def put_latest(changes: queue.Queue, change: FileChange) -> None:
    """Queue a change without blocking, discarding the oldest if full."""
    try:
        changes.put_nowait(change)
        return
    except queue.Full:
        pass

    try:
        changes.get_nowait()
    except queue.Empty:
        pass

    try:
        changes.put_nowait(change)
    except queue.Full:
        logger.debug("dropped file change %s", change.name)


class LogFileEventHandler(FileSystemEventHandler):
    """Turns watchdog events for one file into FileChange intents."""

    def __init__(self, path: Path, changes: queue.Queue) -> None:
        super().__init__()
        self.path = _normalize(os.fspath(path))
        self.changes = changes

    def _matches(self, path: str | bytes) -> bool:
        return _normalize(os.fsdecode(path)) == self.path

    def _push(self, change: FileChange) -> None:
        logger.debug("followed file %s: %s", self.path, change.name)
        put_latest(self.changes, change)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._push(FileChange.UPDATED)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._push(FileChange.UPDATED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._push(FileChange.REMOVED)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if self._matches(event.src_path):
            self._push(FileChange.REMOVED)
        # A file moved onto the followed path replaces it
        if self._matches(event.dest_path):
            self._push(FileChange.UPDATED)


def _normalize(path: str) -> str:
    return os.path.normcase(os.path.abspath(path))


class FollowedLogSource(_ClosingContext):
    """A log file that is re-read whenever it changes.

    The file is watched by polling its metadata rather than waiting for
    native notifications, which are unreliable on network filesystems
    and while another process is still writing. Changes found between
    two polls collapse into the most recent one, so several writes
    cause a single re-read.

    watchdog runs the watch on two threads of its own, an observer and
    an emitter. close() stops both.

    Usage:
        with FollowedLogSource(Path("SMAPI-latest.txt")) as source:
            log = source.poll(Log.empty())
            ...
            new_log = source.poll(log)  # None unless the file changed
    """

    def __init__(
        self,
        path: Path,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_pending: int = DEFAULT_MAX_PENDING_CHANGES,
    ) -> None:
        """Read the file and start watching it.

        Args:
            path: The log file to follow.
            poll_interval: Seconds between checks of the file.
            max_pending: Changes kept between two polls.

        Raises:
            OSError: If the file can't be read.
            LogParseError: If the file is not a valid SMAPI log.
            WatchError: If the file can't be watched.
        """
        self.path = Path(path)
        self.initial_log = Log.from_file(self.path)
        self._pending: Log | None = self.initial_log

        self._changes: queue.Queue[FileChange] = queue.Queue(maxsize=max_pending)
        self.event_handler = LogFileEventHandler(self.path, self._changes)
        self._observer = PollingObserver(timeout=poll_interval)

        watch_dir = os.path.dirname(os.path.abspath(self.path))
        try:
            self._observer.schedule(self.event_handler, watch_dir, recursive=False)
            self._observer.start()
        except OSError as e:
            raise WatchError(f"error watching file: {self.path}: {e}") from e

        logger.info("following %s every %.1fs", self.path, poll_interval)

    def poll(self, previous: Log) -> Log | None:
        """Apply the latest pending change, if any.

        A removed file resets the log to an empty one. An updated file is
        re-read; if that fails (for example while it is mid-write) the
        failure is logged and no new log is returned.
        """
        latest: FileChange | None = None
        while True:
            try:
                latest = self._changes.get_nowait()
            except queue.Empty:
                break

        log, self._pending = self._pending, None

        if latest is FileChange.REMOVED:
            logger.info("followed file removed: %s", self.path)
            return Log.empty()

        if latest is FileChange.UPDATED:
            try:
                return Log.from_file(self.path)
            except (OSError, UnicodeDecodeError, LogParseError) as e:
                logger.warning("keeping previous log, could not reload %s: %s", self.path, e)

        return log

    def close(self) -> None:
        """Stop the file watcher and wait for it to exit."""
        if self._observer.is_alive():
            self._observer.stop()
            self._observer.join()
            logger.debug("stopped following %s", self.path)


# --- Streamed input ---

class StreamedLogSource(_ClosingContext):
    """A log read line by line from a blocking stream, such as stdin.

    A background thread forwards each line as it arrives. poll() appends
    everything received so far to the previous log's text and re-parses
    the whole. When that fails the received text is kept, since a later
    line may complete it.

    Bytes are decoded as strict UTF-8, like Log.from_reader(). Invalid
    input ends the stream: the decode error is logged by the next poll()
    and lines received before it are kept.
    """

    def __init__(
        self,
        stream: TextIO | BinaryIO,
        join_timeout: float = DEFAULT_JOIN_TIMEOUT,
    ) -> None:
        """Start reading from a stream.

        Args:
            stream: Text or binary stream. Bytes are decoded as UTF-8.
            join_timeout: Seconds close() waits for the reader thread.
        """
        self._lines: queue.Queue[str | Exception] = queue.Queue()
        self._unparsed: list[str] = []
        self._join_timeout = join_timeout
        self._stopped = threading.Event()
        self._reader_thread = threading.Thread(
            target=self._read_lines,
            args=(stream,),
            name="pufferwatch-reader",
            daemon=True,
        )
        self._reader_thread.start()

    @classmethod
    def from_stdin(cls) -> "StreamedLogSource":
        return cls(sys.stdin.buffer)

    @property
    def unparsed(self) -> str:
        """Text received but not yet part of a successfully parsed log."""
        return "".join(self._unparsed)

    def _read_lines(self, stream: TextIO | BinaryIO) -> None:
        decoder = codecs.getincrementaldecoder("utf-8-sig")()
        while not self._stopped.is_set():
            try:
                data = stream.readline()
                line = data
                if isinstance(data, bytes):
                    line = decoder.decode(data, final=not data)
            except (OSError, ValueError) as e:
                # UnicodeDecodeError is a ValueError
                self._lines.put(e)
                return

            if line:
                self._lines.put(line)
            if not data:
                logger.debug("log stream closed")
                return

    def poll(self, previous: Log) -> Log | None:
        received = False
        while True:
            try:
                item = self._lines.get_nowait()
            except queue.Empty:
                break

            if isinstance(item, Exception):
                logger.warning("error reading log stream: %s", item)
                continue
            self._unparsed.append(item)
            received = True

        if not received:
            return None

        raw = previous.raw + self.unparsed
        try:
            log = Log.from_text(raw)
        except LogParseError as e:
            logger.debug("unable to parse streamed log yet: %s", e)
            return None

        self._unparsed.clear()
        return log

    def close(self) -> None:
        """Signal the reader thread to stop and wait for it.

        A thread blocked in readline() only sees the signal once the read
        returns, so the wait is bounded by the join timeout.
        """
        self._stopped.set()
        self._reader_thread.join(self._join_timeout)
        if self._reader_thread.is_alive():
            logger.debug("reader thread still blocked on input")
