"""Rich console rendering shared by the CLI commands."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

import pyperclip
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from grokpilot.models.run import SessionRecord, SessionStatus

logger = logging.getLogger(__name__)

console = Console()

_STATUS_ICONS = {
    SessionStatus.COMPLETED: "[green]✓[/green]",
    SessionStatus.RUNNING: "[yellow]⟳[/yellow]",
    SessionStatus.FAILED: "[red]✗[/red]",
    SessionStatus.TIMEOUT: "[red]⏱[/red]",
}


def print_banner() -> None:
    console.print("\n  [bold cyan]grokpilot[/bold cyan] — ask Grok when you're stuck\n")


def print_bundle_info(file_count: int, char_count: int, skipped: list[str]) -> None:
    console.print(
        f"  [dim]Bundle: {file_count} file(s), {char_count:,} chars (~{round(char_count / 4):,} tokens)[/dim]"
    )
    if skipped:
        console.print(f"  [yellow]Skipped {len(skipped)} file(s):[/yellow]")
        for entry in skipped:
            console.print(f"  [yellow]  - {escape(entry)}[/yellow]")


def print_answer(answer: str) -> None:
    console.print()
    console.print(Panel(Text(answer), title="Grok Response", border_style="green"))


def print_bundle(text: str) -> None:
    console.print(Panel(Text(text), title="Bundle", border_style="blue"))


def write_output_file(path: str | Path, text: str) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")
    console.print(f"  [dim]Output written to: {target}[/dim]")
    return target


def copy_to_clipboard(text: str) -> bool:
    """Put *text* on the system clipboard; ``False`` when no clipboard is available."""
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        logger.debug("Clipboard unavailable: %s", e)
        return False
    return True


def _local_time(iso: str) -> str:
    try:
        return datetime.fromisoformat(iso).astimezone().strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return iso


def print_session_list(records: list[SessionRecord]) -> None:
    if not records:
        console.print("  [dim]No recent sessions.[/dim]")
        return

    table = Table(title="Recent Sessions")
    table.add_column("", width=2)
    table.add_column("ID", style="cyan")
    table.add_column("Created", style="dim")
    table.add_column("Duration", justify="right", style="dim")
    table.add_column("Files", justify="right", style="dim")
    table.add_column("Prompt")
    for r in records:
        prompt = escape(r.prompt[:80]) + ("…" if len(r.prompt) > 80 else "")
        if r.status is SessionStatus.FAILED and r.error_message:
            prompt += f"\n[red]{escape(r.error_message)}[/red]"
        table.add_row(
            _STATUS_ICONS.get(r.status, "?"),
            r.id,
            _local_time(r.created_at),
            f"{r.duration_ms / 1000:.1f}s" if r.duration_ms else "",
            str(len(r.files)) if r.files else "",
            prompt,
        )
    console.print(table)


def print_session_detail(record: SessionRecord) -> None:
    console.print(f"\n  [bold]Session: {record.id}[/bold]")
    console.print(f"  [dim]Created: {_local_time(record.created_at)}[/dim]")
    console.print(f"  [dim]Status:  {record.status.value}[/dim]")
    if record.duration_ms:
        console.print(f"  [dim]Duration: {record.duration_ms / 1000:.1f}s[/dim]")
    console.print(f"  [dim]Files: {', '.join(record.files) or 'none'}[/dim]")
    if record.error_message:
        console.print(f"  [red]Error: {escape(record.error_message)}[/red]")
    console.print("\n  [bold]Prompt:[/bold]")
    console.print("  " + record.prompt.replace("\n", "\n  "), markup=False)
    if record.answer:
        print_answer(record.answer)
