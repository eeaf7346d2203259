"""Helpers shared by CLI commands."""

import logging
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from parley.config.loader import ConfigError, load_config
from parley.config.schema import ParleyConfig


def configure_logging(level: str, console: Console | None = None) -> None:
    """Send log records through rich at the configured level."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def load_cli_config(config_path: str | None, console: Console) -> ParleyConfig | None:
    """Load config for a command, reporting failures on the console.

    Returns:
        The configuration, or None if it could not be loaded
    """
    path = Path(config_path) if config_path else None
    try:
        config = load_config(path)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        return None
    configure_logging(config.logging.level, console)
    return config


SEGMENT_STYLES = {
    "reasoning": ("Thinking", "dim"),
    "tool_activity": ("Tool activity", "yellow"),
    "answer": ("parley", "green"),
}


def format_millis(epoch_millis: int) -> str:
    """Format epoch milliseconds as local time."""
    return datetime.fromtimestamp(epoch_millis / 1000).strftime("%Y-%m-%d %H:%M:%S")
