"""Console output for the vaultsync CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormatter:
    """Formats user-facing output, with quiet and JSON modes."""

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of text
            quiet: Suppress non-essential output
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(f"✓ {message}", style="green", markup=False)

    def warning(self, message: str) -> None:
        # Warnings are shown even in quiet mode
        self.err_console.print(message, style="yellow", markup=False)

    def error(self, message: str) -> None:
        self.err_console.print(f"Error: {message}", style="bold red", markup=False)

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data))

    def output_table(
        self, columns: list[str], rows: list[list[str]], title: Optional[str] = None
    ) -> None:
        if self.json_output:
            self.output_json([dict(zip(columns, row)) for row in rows])
            return
        table = Table(title=title)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*(escape(cell) for cell in row))
        self.console.print(table)
