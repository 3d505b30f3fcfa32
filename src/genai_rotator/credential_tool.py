# src/genai_rotator/credential_tool.py

import os
from pathlib import Path
from typing import List, Optional, Tuple, Union

from dotenv import dotenv_values, set_key, unset_key
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from .core.config import KEY_ENV_PREFIX, _extract_key_number, discover_env_keys
from .core.errors import mask_credential
from .core.types import credential_id_for_token
from .utils.paths import get_data_file

console = Console()


def _get_env_file(env_file: Optional[Union[str, Path]] = None) -> Path:
    """Get the .env file path (explicit path, or the data directory's .env)."""
    return Path(env_file) if env_file else get_data_file(".env")


def get_api_keys_from_env(
    env_file: Optional[Union[str, Path]] = None,
) -> List[Tuple[str, str, Optional[str]]]:
    """
    Read the Gemini API keys stored in the .env file.

    Returns:
        List of (key name, key value, display name) sorted by key number.
        Example: [("GEMINI_API_KEY_1", "AIza...", "Main project")]
    """
    path = _get_env_file(env_file)
    if not path.is_file():
        return []
    values = {k: v for k, v in dotenv_values(path).items() if v is not None}
    return [
        (name, value, display)
        for name, value, display in discover_env_keys(values)
        if not value.startswith("YOUR_")
    ]


def _next_key_name(existing: List[Tuple[str, str, Optional[str]]]) -> str:
    highest = max((_extract_key_number(name) for name, _, _ in existing), default=0)
    return f"{KEY_ENV_PREFIX}_{highest + 1}"


def add_api_key(
    api_key: str,
    display_name: Optional[str] = None,
    env_file: Optional[Union[str, Path]] = None,
) -> Tuple[str, bool]:
    """
    Store a key at the next free GEMINI_API_KEY_<N> slot.

    Returns:
        (key name, created); created is False when the key was already stored
    """
    api_key = api_key.strip()
    if not api_key:
        raise ValueError("API key must not be empty")

    path = _get_env_file(env_file)
    existing = get_api_keys_from_env(path)
    for key_name, value, _ in existing:
        if value == api_key:
            return key_name, False

    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)
    key_name = _next_key_name(existing)
    set_key(str(path), key_name, api_key)
    if display_name:
        set_key(str(path), f"{key_name}_NAME", display_name.strip())
    return key_name, True


def delete_api_key(key_name: str, env_file: Optional[Union[str, Path]] = None) -> bool:
    """Remove a key (and its display name) from the .env file."""
    path = _get_env_file(env_file)
    if not path.is_file():
        return False
    removed, _ = unset_key(str(path), key_name)
    if removed:
        values = dotenv_values(path)
        if f"{key_name}_NAME" in values:
            unset_key(str(path), f"{key_name}_NAME")
    return bool(removed)


def clear_screen(subtitle: str = "Gemini Key Setup"):
    """Cross-platform terminal clear with header display."""
    os.system("cls" if os.name == "nt" else "clear")
    console.print(
        Panel(
            f"[bold cyan]{subtitle}[/bold cyan]",
            title="--- GenAI Key Rotator ---",
        )
    )


def _display_keys_table(keys: List[Tuple[str, str, Optional[str]]]) -> None:
    if not keys:
        console.print("[bold yellow]No API keys configured.[/bold yellow]")
        return

    table = Table(box=None, padding=(0, 2))
    table.add_column("#", style="dim", width=3)
    table.add_column("Key Name", style="yellow")
    table.add_column("Display Name", style="cyan")
    table.add_column("Id", style="dim")
    table.add_column("Value", style="dim")
    for idx, (key_name, key_value, display_name) in enumerate(keys, start=1):
        table.add_row(
            str(idx),
            key_name,
            display_name or "-",
            credential_id_for_token(key_value),
            mask_credential(key_value),
        )
    console.print(table)


def _add_key_menu(env_file: Path) -> None:
    clear_screen("Add API Key")
    api_key = Prompt.ask("Enter the Gemini API key", password=True)
    if not api_key.strip():
        console.print("[bold red]No key entered.[/bold red]")
        return
    display_name = Prompt.ask("Display name (optional)", default="")
    key_name, created = add_api_key(api_key, display_name or None, env_file)
    if created:
        console.print(
            Panel(
                f"Saved as [yellow]{key_name}[/yellow]",
                style="bold green",
                title="Success",
                expand=False,
            )
        )
    else:
        console.print(f"[bold yellow]Key already stored as {key_name}.[/bold yellow]")


def _delete_key_menu(env_file: Path) -> None:
    clear_screen("Delete API Key")
    keys = get_api_keys_from_env(env_file)
    _display_keys_table(keys)
    if not keys:
        return

    choice = Prompt.ask(
        Text.from_markup(
            "\n[bold]Select API key to delete or type [red]'b'[/red] to go back[/bold]"
        ),
        choices=[str(i) for i in range(1, len(keys) + 1)] + ["b"],
        show_choices=False,
    )
    if choice.lower() == "b":
        return

    key_name, key_value, _ = keys[int(choice) - 1]
    if not Confirm.ask(
        f"[bold red]Delete[/bold red] [yellow]{key_name}[/yellow] ({mask_credential(key_value)})?"
    ):
        console.print("[dim]Deletion cancelled.[/dim]")
        return

    if delete_api_key(key_name, env_file):
        console.print(f"[bold green]Deleted {key_name}.[/bold green]")
    else:
        console.print(f"[bold red]Failed to delete {key_name}.[/bold red]")


def main(env_file: Optional[Union[str, Path]] = None) -> None:
    """Interactive menu to view, add and delete Gemini API keys."""
    path = _get_env_file(env_file)
    while True:
        clear_screen()
        _display_keys_table(get_api_keys_from_env(path))
        console.print(
            Panel(
                Text.from_markup("1. Add API Key\n2. Delete API Key"),
                title="Choose action",
                style="bold blue",
            )
        )
        action = Prompt.ask(
            Text.from_markup(
                "[bold]Please select an option or type [red]'q'[/red] to quit[/bold]"
            ),
            choices=["1", "2", "q"],
            show_choices=False,
        )
        if action == "q":
            break
        if action == "1":
            _add_key_menu(path)
        else:
            _delete_key_menu(path)
        console.print("\n[dim]Press Enter to return to the menu...[/dim]")
        input()


def run_credential_tool(env_file: Optional[Union[str, Path]] = None) -> None:
    """Entry point for the credential tool."""
    try:
        main(env_file)
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Exiting setup.[/bold yellow]")
