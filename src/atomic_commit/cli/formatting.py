"""Rich formatting helpers for the atomic-commit CLI.

Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from atomic_commit.models.account import RepositoryInfo, UserInfo
    from atomic_commit.models.push import PushResult


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def format_push_result(result: PushResult, console: Console) -> None:
    """Display a successful push."""
    console.print(
        f"Pushed [green]{len(result.paths_written)}[/green] file(s) to "
        f"[cyan]{escape(result.ref)}[/cyan]  "
        f"[yellow]{result.previous_commit_hash[:8]}[/yellow] -> "
        f"[yellow]{result.new_commit_hash[:8]}[/yellow]"
    )
    for path in result.paths_written:
        console.print(f"  [green]+[/green] {escape(path)}")
    for path in result.paths_skipped:
        console.print(f"  [dim]skipped {escape(path)}[/dim]")
    if result.commit_url:
        console.print(f"  {escape(result.commit_url)}")


def format_repositories(repos: list[RepositoryInfo], console: Console) -> None:
    """Display pushable repositories in a compact table."""
    if not repos:
        console.print("[dim]No repositories with push access.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Repository", style="cyan")
    table.add_column("Branch", style="green")
    table.add_column("Visibility", style="dim")
    for repo in repos:
        table.add_row(
            escape(repo.full_name),
            escape(repo.default_branch),
            "private" if repo.private else "public",
        )
    console.print(table)


def format_user(user: UserInfo, console: Console) -> None:
    """Display the connected account."""
    label = f"{escape(user.login)}"
    if user.name:
        label += f" ({escape(user.name)})"
    console.print(f"Connected as [green]{label}[/green]")


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)


def format_hint(message: str, console: Console) -> None:
    """Display a follow-up hint under an error."""
    console.print(f"[dim]{escape(message)}[/dim]", highlight=False)
