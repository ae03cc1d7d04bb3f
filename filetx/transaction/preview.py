# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Rich rendering of transaction diffs, validation results and status."""

from typing import Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from filetx.transaction.protocol import FileDiff, TransactionState, ValidationResult
from filetx.transaction.transaction import FileTransaction

_STATE_STYLES = {
    TransactionState.COMMITTED: "green",
    TransactionState.VALIDATED: "cyan",
    TransactionState.ROLLED_BACK: "yellow",
    TransactionState.FAILED: "bold red",
    TransactionState.ABORTED: "red",
}


def render_diff(diff: Optional[FileDiff], console: Optional[Console] = None) -> None:
    """Show a unified diff panel for one validated file."""
    console = console or Console()

    if diff is None:
        console.print("[dim]No preview available (not validated)[/]")
        return

    console.print(f"\n[bold yellow]~ Modify:[/] {diff.file_path}")
    if diff.changed and diff.unified_diff:
        syntax = Syntax(diff.unified_diff, "diff", theme="monokai", line_numbers=False)
        title = f"Diff ({diff.original_lines} -> {diff.modified_lines} lines)"
        console.print(Panel(syntax, title=title, border_style="yellow"))
    else:
        console.print("[dim]No changes[/]")


def render_validation(result: ValidationResult, console: Optional[Console] = None) -> None:
    """Show per-file validation outcome, with nearest-line hints for misses."""
    console = console or Console()

    table = Table(title="Validation", show_lines=False)
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Details")

    for file_result in result.files:
        if file_result.edits_valid:
            table.add_row(file_result.file_path, "[green]ok[/]", "")
            continue

        details = []
        for failure in file_result.failures:
            line = failure.error.splitlines()[0]
            if failure.suggestion is not None:
                line += f" (closest: line {failure.suggestion.line})"
            details.append(line)
        if not details:
            details = file_result.errors
        table.add_row(file_result.file_path, "[red]invalid[/]", "\n".join(details))

    console.print(table)
    if result.valid:
        console.print("[bold green]All edits apply cleanly[/]")
    else:
        console.print(f"[bold red]{len(result.errors)} error(s)[/]")


def render_status(
    transactions: Iterable[FileTransaction], console: Optional[Console] = None
) -> None:
    """Show a summary table of transactions."""
    console = console or Console()

    table = Table(title="Transactions")
    table.add_column("ID", style="cyan")
    table.add_column("State")
    table.add_column("Files", justify="right")
    table.add_column("Edits", justify="right")
    table.add_column("Backups", justify="right")

    for tx in transactions:
        style = _STATE_STYLES.get(tx.state, "white")
        table.add_row(
            tx.id,
            f"[{style}]{tx.state.value}[/]",
            str(len(tx.staged_edits)),
            str(tx.staged_count),
            str(len(tx.backups)),
        )

    console.print(table)
