"""Parser for .pufferignore configuration files, and default paths."""

import os
import sys
from pathlib import Path

from .models import FilterConfig, Level


class FilterConfigParseError(Exception):
    """Error parsing .pufferignore file."""

    def __init__(self, message: str, line_number: int, line_content: str):
        self.line_number = line_number
        self.line_content = line_content
        super().__init__(f"Line {line_number}: {message}\n  Content: {line_content!r}")


def parse_filter_file(path: Path) -> FilterConfig:
    """Parse a .pufferignore file from disk.

    Args:
        path: Path to the .pufferignore file.

    Returns:
        Parsed FilterConfig.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        FilterConfigParseError: If the file contains invalid syntax.
    """
    content = path.read_text(encoding="utf-8")
    return parse_filter_content(content)


def parse_filter_content(content: str) -> FilterConfig:
    """Parse .pufferignore content from a string.

    Format:
        - LEVEL:<keyword> hides a level (TRACE, DEBUG, INFO, ALERT, WARN, ERROR)
        - SOURCE:<name> hides a source
        - Lines starting with # are comments
        - Empty lines are ignored

    Args:
        content: The raw content of a .pufferignore file.

    Returns:
        Parsed FilterConfig.

    Raises:
        FilterConfigParseError: If the content contains invalid syntax.
    """
    config = FilterConfig()

    for line_number, line in enumerate(content.splitlines(), start=1):
        parse_filter_line(config, line, line_number)

    return config


def parse_filter_line(config: FilterConfig, line: str, line_number: int) -> None:
    """Parse a single .pufferignore line into config.

    Raises:
        FilterConfigParseError: If the line contains invalid syntax.
    """
    line = line.strip()

    # Skip empty lines and comments
    if not line or line.startswith("#"):
        return

    if ":" not in line:
        raise FilterConfigParseError(
            "Invalid rule format. Expected TYPE:value",
            line_number,
            line,
        )

    # Source names may contain colons, so split on the first one only
    rule_type, _, value = line.partition(":")
    rule_type = rule_type.strip().upper()
    value = value.strip()

    if not value:
        raise FilterConfigParseError(
            f"Empty value for rule type {rule_type}",
            line_number,
            line,
        )

    match rule_type:
        case "LEVEL":
            try:
                config.hide_level(Level.from_str(value))
            except ValueError as e:
                raise FilterConfigParseError(str(e), line_number, line) from e
        case "SOURCE":
            if "]" in value:
                raise FilterConfigParseError(
                    f"Invalid source '{value}' - sources cannot contain ']'",
                    line_number,
                    line,
                )
            config.hide_source(value)
        case _:
            raise FilterConfigParseError(
                f"Unknown rule type: {rule_type}. Expected LEVEL or SOURCE",
                line_number,
                line,
            )


# --- Sample file generation ---

SAMPLE_PUFFERIGNORE = """\
# .pufferignore - Levels and sources to hide when a log is opened
#
# Supported rules:
#   LEVEL:TRACE      - Hide all messages with this level
#   SOURCE:Name      - Hide all messages from this source
#
# Hidden entries can still be shown again from the viewer.

# SMAPI writes a lot of trace output
LEVEL:TRACE

# Chatty framework sources
SOURCE:SMAPI
SOURCE:Content Patcher
"""


def generate_sample_filter_file(path: Path) -> bool:
    """Generate a sample .pufferignore file.

    Args:
        path: Path where the file should be created.

    Returns:
        True if file was created, False if it already exists.
    """
    if path.exists():
        return False

    path.write_text(SAMPLE_PUFFERIGNORE, encoding="utf-8")
    return True


# --- Default paths ---

SMAPI_LOG_SUBPATH = Path("StardewValley") / "ErrorLogs" / "SMAPI-latest.txt"


def default_log_path() -> Path | None:
    """Get the path SMAPI writes its latest log to.

    Returns:
        The default log path, or None if no config directory is known.
    """
    config_dir = _config_dir()
    if config_dir is None:
        return None
    return config_dir / SMAPI_LOG_SUBPATH


def _config_dir() -> Path | None:
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        return Path(appdata) if appdata else None

    # SMAPI uses ~/.config on macOS too
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg and sys.platform != "darwin":
        return Path(xdg)
    return Path.home() / ".config"
