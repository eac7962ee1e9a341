"""Tests for the command-line interface."""

import logging
from unittest.mock import MagicMock, patch

import pytest
import requests
from typer.testing import CliRunner
from watchdog.events import FileModifiedEvent

from pufferwatch import __version__
from pufferwatch.cli import app
from pufferwatch.events import TICK, EventController
from pufferwatch.sources import FollowedLogSource, StreamedLogSource


SAMPLE_LOG = """\
[00:00:01 INFO SMAPI] Starting
[00:00:02 TRACE Mod.B] Loading
[00:00:03 ERROR Mod.A] Boom
"""

runner = CliRunner()


@pytest.fixture
def log_file(tmp_path):
    path = tmp_path / "SMAPI-latest.txt"
    path.write_text(SAMPLE_LOG, encoding="utf-8")
    return path


@pytest.fixture
def no_ignore(tmp_path):
    return str(tmp_path / "missing.pufferignore")


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestInit:
    """Tests for the init command."""

    def test_creates_sample(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert "Created" in result.output
        assert (tmp_path / ".pufferignore").exists()

    def test_skips_existing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".pufferignore").write_text("SOURCE:Mine\n", encoding="utf-8")

        result = runner.invoke(app, ["init"])

        assert "Skipped" in result.output
        assert (tmp_path / ".pufferignore").read_text(encoding="utf-8") == "SOURCE:Mine\n"

    def test_force_overwrites(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".pufferignore").write_text("SOURCE:Mine\n", encoding="utf-8")

        result = runner.invoke(app, ["init", "--force"])

        assert "Created" in result.output
        assert "SOURCE:Mine" not in (tmp_path / ".pufferignore").read_text(encoding="utf-8")


class TestLogCommand:
    """Tests for the log command."""

    def test_prints_log(self, log_file, no_ignore):
        result = runner.invoke(
            app, ["log", "--log", str(log_file), "--no-color", "--ignore-file", no_ignore]
        )

        assert result.exit_code == 0
        assert "[00:00:01 INFO SMAPI] Starting" in result.output
        assert "[00:00:03 ERROR Mod.A] Boom" in result.output

    def test_applies_ignore_file(self, log_file, tmp_path):
        """Hidden levels and sources are left out."""
        ignore = tmp_path / ".pufferignore"
        ignore.write_text("LEVEL:TRACE\nSOURCE:SMAPI\n", encoding="utf-8")

        result = runner.invoke(
            app, ["log", "--log", str(log_file), "--no-color", "--ignore-file", str(ignore)]
        )

        assert result.exit_code == 0
        assert "Starting" not in result.output
        assert "Loading" not in result.output
        assert "Boom" in result.output

    def test_stats(self, log_file, no_ignore):
        result = runner.invoke(
            app,
            ["log", "--log", str(log_file), "--no-color", "--stats", "--ignore-file", no_ignore],
        )

        assert result.exit_code == 0
        assert "Total messages: 3" in result.output

    def test_invalid_log(self, tmp_path, no_ignore):
        """A log that doesn't parse exits with an error."""
        path = tmp_path / "bad.txt"
        path.write_text("not a log\n", encoding="utf-8")

        result = runner.invoke(app, ["log", "--log", str(path), "--ignore-file", no_ignore])

        assert result.exit_code == 1
        assert "Error creating log source" in result.output

    def test_missing_log(self, tmp_path, no_ignore):
        result = runner.invoke(
            app, ["log", "--log", str(tmp_path / "missing.txt"), "--ignore-file", no_ignore]
        )
        assert result.exit_code == 1

    def test_invalid_ignore_file(self, log_file, tmp_path):
        ignore = tmp_path / ".pufferignore"
        ignore.write_text("LEVEL:FATAL\n", encoding="utf-8")

        result = runner.invoke(
            app, ["log", "--log", str(log_file), "--ignore-file", str(ignore)]
        )

        assert result.exit_code == 1
        assert "Error parsing" in result.output

    def test_no_default_path(self, no_ignore):
        with patch("pufferwatch.cli.default_log_path", return_value=None):
            result = runner.invoke(app, ["log", "--ignore-file", no_ignore])

        assert result.exit_code == 1
        assert "unable to find log path" in result.output


class TestRemoteCommand:
    """Tests for the remote command."""

    def test_prints_remote_log(self, no_ignore):
        response = MagicMock()
        response.headers = {"Content-Type": "text/plain; charset=utf-8"}
        response.text = SAMPLE_LOG

        with patch("pufferwatch.sources.requests.get", return_value=response) as get:
            result = runner.invoke(
                app,
                ["remote", "https://example.com/log", "--no-color", "--ignore-file", no_ignore],
            )

        assert result.exit_code == 0
        assert "[00:00:03 ERROR Mod.A] Boom" in result.output
        get.assert_called_once_with("https://example.com/log", timeout=30.0)

    def test_network_error(self, no_ignore):
        with patch(
            "pufferwatch.sources.requests.get",
            side_effect=requests.ConnectionError("refused"),
        ):
            result = runner.invoke(
                app, ["remote", "https://example.com/log", "--ignore-file", no_ignore]
            )

        assert result.exit_code == 1
        assert "error retrieving remote log" in result.output


class TestOutputLog:
    def test_writes_own_log(self, log_file, tmp_path, no_ignore, monkeypatch):
        """--output-log sends pufferwatch's logs to a file."""
        output = tmp_path / "logs" / "pufferwatch.log"
        monkeypatch.setenv("PUFFERWATCH_LOG", "debug")
        package_logger = logging.getLogger("pufferwatch")
        handlers = list(package_logger.handlers)

        try:
            result = runner.invoke(
                app,
                ["--output-log", str(output), "log", "--log", str(log_file),
                 "--ignore-file", no_ignore],
            )
        finally:
            for handler in package_logger.handlers[:]:
                if handler not in handlers:
                    package_logger.removeHandler(handler)
                    handler.close()

        assert result.exit_code == 0
        assert "starting pufferwatch" in output.read_text(encoding="utf-8")


# --- Live modes ---


def scripted_events(*steps):
    """Build a next_event() that runs one step per tick, then interrupts."""
    steps = list(steps)

    def next_event(timeout=None):
        if not steps:
            raise KeyboardInterrupt
        steps.pop(0)()
        return TICK

    return next_event


class RecordingStreamedSource(StreamedLogSource):
    instances = []

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.closed = False
        self.instances.append(self)

    def close(self):
        self.closed = True
        super().close()


class RecordingFollowedSource(FollowedLogSource):
    instances = []

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.closed = False
        self.instances.append(self)

    def close(self):
        self.closed = True
        super().close()


@pytest.fixture
def recorded_sources():
    RecordingStreamedSource.instances = []
    RecordingFollowedSource.instances = []
    with patch("pufferwatch.cli.StreamedLogSource", RecordingStreamedSource), patch(
        "pufferwatch.cli.FollowedLogSource", RecordingFollowedSource
    ):
        yield


class TestStdinCommand:
    """Tests for the stdin command."""

    def test_prints_piped_log(self, no_ignore, recorded_sources):
        """Lines read from stdin are printed once a tick picks them up."""

        def wait_for_reader():
            RecordingStreamedSource.instances[0]._reader_thread.join(5.0)

        with patch.object(
            EventController, "next_event", side_effect=scripted_events(wait_for_reader)
        ) as next_event:
            result = runner.invoke(
                app,
                ["stdin", "--no-color", "--stats", "--ignore-file", no_ignore],
                input=SAMPLE_LOG,
            )

        assert result.exit_code == 0
        assert "[00:00:01 INFO SMAPI] Starting" in result.output
        assert "[00:00:03 ERROR Mod.A] Boom" in result.output
        assert result.output.count("Starting") == 1
        assert "Interrupted." in result.output
        assert "Total messages: 3" in result.output
        assert next_event.call_count == 2
        assert RecordingStreamedSource.instances[0].closed

    def test_empty_input(self, no_ignore, recorded_sources):
        with patch.object(EventController, "next_event", side_effect=scripted_events()):
            result = runner.invoke(
                app, ["stdin", "--no-color", "--ignore-file", no_ignore], input=""
            )

        assert result.exit_code == 0
        assert "Interrupted." in result.output
        assert RecordingStreamedSource.instances[0].closed


class TestFollowCommand:
    """Tests for log --follow."""

    def test_prints_appended_messages(self, log_file, no_ignore, recorded_sources):
        """The initial log is printed, then only what gets appended."""

        def append():
            with open(log_file, "a", encoding="utf-8") as f:
                f.write("[00:00:04 WARN Mod.C] Appended\n")
            source = RecordingFollowedSource.instances[0]
            source.event_handler.dispatch(FileModifiedEvent(str(log_file)))

        with patch.object(
            EventController, "next_event", side_effect=scripted_events(append)
        ):
            result = runner.invoke(
                app,
                ["log", "--log", str(log_file), "--follow", "--interval", "60",
                 "--no-color", "--ignore-file", no_ignore],
            )

        assert result.exit_code == 0
        assert result.output.count("[00:00:01 INFO SMAPI] Starting") == 1
        assert "[00:00:04 WARN Mod.C] Appended" in result.output
        assert "log reloaded" not in result.output
        assert "Interrupted." in result.output

        source = RecordingFollowedSource.instances[0]
        assert source.closed
        assert not source._observer.is_alive()

    def test_filtered_follow(self, log_file, tmp_path, recorded_sources):
        ignore = tmp_path / ".pufferignore"
        ignore.write_text("SOURCE:Mod.C\n", encoding="utf-8")

        def append():
            with open(log_file, "a", encoding="utf-8") as f:
                f.write("[00:00:04 WARN Mod.C] Hidden\n[00:00:05 INFO SMAPI] Shown\n")
            source = RecordingFollowedSource.instances[0]
            source.event_handler.dispatch(FileModifiedEvent(str(log_file)))

        with patch.object(
            EventController, "next_event", side_effect=scripted_events(append)
        ):
            result = runner.invoke(
                app,
                ["log", "--log", str(log_file), "--follow", "--interval", "60",
                 "--no-color", "--ignore-file", str(ignore)],
            )

        assert result.exit_code == 0
        assert "Hidden" not in result.output
        assert "[00:00:05 INFO SMAPI] Shown" in result.output
