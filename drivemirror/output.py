"""Console output formatting."""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape


class OutputFormatter:
    """Formats user-facing messages, or JSON documents in ``--json`` mode."""

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of text
            quiet: Suppress informational messages
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)

    def _text_enabled(self) -> bool:
        return not self.quiet and not self.json_output

    def print(self, message: str = "") -> None:
        """Print a plain line."""
        if self._text_enabled():
            self.console.print(message, markup=False)

    def info(self, message: str) -> None:
        """Print an informational message."""
        if self._text_enabled():
            self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        """Print a success message."""
        if self._text_enabled():
            self.console.print(f"[green]✓[/green] {escape(message)}")

    def warning(self, message: str) -> None:
        """Print a warning (shown unless JSON output is enabled)."""
        if not self.json_output:
            self.err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        """Print an error (always shown)."""
        self.err_console.print(f"[red]Error:[/red] {escape(message)}")

    def output_json(self, data: Any) -> None:
        """Print a JSON document (JSON mode only)."""
        if self.json_output:
            self.console.print_json(json.dumps(data, ensure_ascii=False))
