# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Key Status Viewer TUI.

Displays the health of every configured key from the key status file and
offers the administrative resets (all keys or one key).
"""

import os
from datetime import datetime
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from genai_rotator.core.errors import mask_credential
from genai_rotator.core.types import Credential, CredentialStatus, KeyStatus, PoolStats
from genai_rotator.usage.manager import KeyStatusManager


# =============================================================================
# DISPLAY CONFIGURATION
# =============================================================================

TABLE_NAME_WIDTH = 24
TABLE_ERROR_WIDTH = 48

# Key status icons and colors: (icon, label, color)
STATUS_DISPLAY = {
    KeyStatus.ACTIVE: (":white_check_mark:", "Active", "green"),
    KeyStatus.QUOTA_EXHAUSTED: (":no_entry:", "Quota exhausted", "red"),
    KeyStatus.DAILY_LIMITED: (":stopwatch:", "Daily limit", "yellow"),
    KeyStatus.PERMANENTLY_BLOCKED: (":lock:", "Blocked", "bold red"),
}

# =============================================================================


def clear_screen():
    """Clear the terminal screen."""
    os.system("cls" if os.name == "nt" else "clear")


def format_timestamp(ts: Optional[float]) -> str:
    if not ts:
        return "-"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")


def format_status(status: CredentialStatus) -> str:
    icon, label, color = STATUS_DISPLAY[status.status]
    return f"{icon} [{color}]{label}[/{color}]"


def build_status_table(
    credentials: List[Credential], statuses: List[CredentialStatus]
) -> Table:
    """Build the per-key status table."""
    table = Table(title="Key Status", show_lines=False)
    table.add_column("#", style="dim", width=3)
    table.add_column("Name", style="cyan", min_width=TABLE_NAME_WIDTH)
    table.add_column("Key", style="dim")
    table.add_column("Status")
    table.add_column("Fails", justify="right")
    table.add_column("Resets", style="yellow")
    table.add_column("Last used", style="dim")
    table.add_column("Last error", max_width=TABLE_ERROR_WIDTH, overflow="ellipsis")

    for idx, (cred, status) in enumerate(zip(credentials, statuses), start=1):
        table.add_row(
            str(idx),
            cred.name,
            mask_credential(cred.token),
            format_status(status),
            str(status.failure_count),
            format_timestamp(status.reset_at),
            format_timestamp(status.last_used_at),
            status.last_error or "",
        )
    return table


def build_stats_panel(stats: PoolStats) -> Panel:
    text = Text.from_markup(
        f"Total: [bold]{stats.total}[/bold]   "
        f"Active: [green]{stats.active}[/green]   "
        f"Quota exhausted: [red]{stats.quota_exhausted}[/red]   "
        f"Daily limit: [yellow]{stats.daily_limited}[/yellow]   "
        f"Blocked: [bold red]{stats.permanently_blocked}[/bold red]"
    )
    return Panel(text, title="Pool", style="bold blue", expand=False)


class StatusViewer:
    """Interactive viewer for key health with reset actions."""

    def __init__(
        self,
        credentials: List[Credential],
        manager: KeyStatusManager,
        console: Optional[Console] = None,
    ):
        self.credentials = credentials
        self.manager = manager
        self.console = console or Console()

    def render(self) -> None:
        statuses = self.manager.list_statuses(self.credentials)
        if not self.credentials:
            self.console.print("[yellow]No API keys configured.[/yellow]")
        else:
            self.console.print(build_status_table(self.credentials, statuses))
        self.console.print(build_stats_panel(self.manager.get_stats(self.credentials)))

    def _reset_one(self) -> None:
        if not self.credentials:
            return
        choice = Prompt.ask(
            Text.from_markup("[bold]Key number to reset or [red]'b'[/red] to go back[/bold]"),
            choices=[str(i) for i in range(1, len(self.credentials) + 1)] + ["b"],
            show_choices=False,
        )
        if choice == "b":
            return
        cred = self.credentials[int(choice) - 1]
        if self.manager.reset_one(cred.id):
            self.console.print(f"[green]Reset '{cred.name}'.[/green]")
        else:
            self.console.print(f"[dim]'{cred.name}' had no recorded status.[/dim]")

    def run(self) -> None:
        while True:
            clear_screen()
            self.manager.reload()
            self.render()
            self.console.print()
            self.console.print("━" * 78)
            self.console.print("   R. Reload   A. Reset all keys   O. Reset one key   Q. Quit")
            self.console.print("━" * 78)
            action = Prompt.ask(
                "Action",
                choices=["r", "a", "o", "q"],
                default="r",
                show_choices=False,
                case_sensitive=False,
            ).lower()
            if action == "q":
                break
            if action == "a" and Confirm.ask("[bold red]Reset every key status?[/bold red]"):
                self.manager.reset_all()
            elif action == "o":
                self._reset_one()
