# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Command line entry point for the GenAI key rotator.

Commands:
    status           Print key health and pool stats
    reset [--name]   Reset every key status, or one key by name/id
    image PROMPT     Generate an image through the fallback chain
    text PROMPT      Generate text with key rotation
    web-login        Validate and save a Gemini web cookie session
    keys             Interactive .env key management
    viewer           Interactive key status viewer
"""

import argparse
import asyncio
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from genai_rotator.client.studio_client import StudioClient
from genai_rotator.core.config import load_credentials
from genai_rotator.core.constants import KEY_STATUS_FILE_NAME
from genai_rotator.core.errors import GenerationError
from genai_rotator.credential_tool import run_credential_tool
from genai_rotator.usage.manager import KeyStatusManager
from genai_rotator.usage.storage import KeyStatusStorage
from genai_rotator.utils.paths import get_data_file

from .status_viewer import StatusViewer, build_stats_panel, build_status_table

console = Console()


def configure_logging(verbose: bool = False) -> None:
    """Route the library logger through rich."""
    lib_logger = logging.getLogger("genai_rotator")
    if not any(isinstance(h, RichHandler) for h in lib_logger.handlers):
        lib_logger.addHandler(
            RichHandler(console=Console(stderr=True), show_path=False, markup=False)
        )
    lib_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    lib_logger.propagate = False
    # LiteLLM is chatty at INFO
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)


def _status_manager(status_file: Optional[str]) -> KeyStatusManager:
    path = Path(status_file) if status_file else get_data_file(KEY_STATUS_FILE_NAME)
    return KeyStatusManager(KeyStatusStorage(path))


def cmd_status(args: argparse.Namespace) -> int:
    credentials = load_credentials()
    manager = _status_manager(args.status_file)
    statuses = manager.list_statuses(credentials)
    if args.json:
        print(
            json.dumps(
                {
                    "keys": [s.to_dict() for s in statuses],
                    "stats": manager.get_stats(credentials).to_dict(),
                },
                indent=2,
            )
        )
        return 0
    if credentials:
        console.print(build_status_table(credentials, statuses))
    console.print(build_stats_panel(manager.get_stats(credentials)))
    return 0


def cmd_reset(args: argparse.Namespace) -> int:
    manager = _status_manager(args.status_file)
    if args.name:
        if not manager.reset_one(args.name):
            console.print(f"[yellow]No recorded status for '{args.name}'.[/yellow]")
            return 1
        console.print(f"[green]Reset '{args.name}'.[/green]")
    else:
        manager.reset_all()
        console.print("[green]All key statuses reset.[/green]")
    return 0


async def _generate_image(args: argparse.Namespace) -> int:
    async with StudioClient(status_file=args.status_file) as client:
        await client.load_saved_web_session()
        asset = await client.generate_image(args.prompt, args.aspect_ratio)

    out = Path(args.out) if args.out else None
    if out is None:
        extension = mimetypes.guess_extension(asset.mime_type) or ".png"
        out = Path(f"image{extension}")
    out.write_bytes(asset.data)
    console.print(
        f"[green]Saved {asset.size} bytes to {out} (backend: {asset.backend})[/green]"
    )
    return 0


async def _generate_text(args: argparse.Namespace) -> int:
    schema = None
    if args.schema:
        try:
            schema = json.loads(Path(args.schema).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            console.print(f"[bold red]Could not read schema file {args.schema}: {e}[/bold red]")
            return 1
    async with StudioClient(status_file=args.status_file) as client:
        result = await client.generate_text(args.prompt, schema=schema)
    if isinstance(result, str):
        print(result)
    else:
        print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


async def _web_login(args: argparse.Namespace) -> int:
    cookie_string = args.cookies or sys.stdin.read()
    async with StudioClient(status_file=args.status_file) as client:
        await client.initialize_web_session(cookie_string.strip())
    console.print("[green]Gemini web session validated and saved.[/green]")
    return 0


def cmd_viewer(args: argparse.Namespace) -> int:
    StatusViewer(load_credentials(), _status_manager(args.status_file), console).run()
    return 0


def cmd_keys(args: argparse.Namespace) -> int:
    run_credential_tool(args.env_file)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="genai-studio",
        description="Gemini generation with API key rotation and backend fallback",
    )
    parser.add_argument("--status-file", help="Path of the key status JSON file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Show key health")
    status.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    status.set_defaults(func=cmd_status)

    reset = sub.add_parser("reset", help="Reset key statuses")
    reset.add_argument("--name", help="Reset only the key with this display name or id")
    reset.set_defaults(func=cmd_reset)

    image = sub.add_parser("image", help="Generate an image")
    image.add_argument("prompt")
    image.add_argument("--aspect-ratio", default="1:1")
    image.add_argument("--out", help="Output file (default: image.<ext>)")
    image.set_defaults(func=lambda a: asyncio.run(_generate_image(a)))

    text = sub.add_parser("text", help="Generate text")
    text.add_argument("prompt")
    text.add_argument("--schema", help="JSON schema file; output is parsed JSON")
    text.set_defaults(func=lambda a: asyncio.run(_generate_text(a)))

    web = sub.add_parser("web-login", help="Validate and save a Gemini web cookie session")
    web.add_argument("--cookies", help="Cookie header string (read from stdin if omitted)")
    web.set_defaults(func=lambda a: asyncio.run(_web_login(a)))

    keys = sub.add_parser("keys", help="Manage API keys in .env")
    keys.add_argument("--env-file", help="Path of the .env file")
    keys.set_defaults(func=cmd_keys)

    viewer = sub.add_parser("viewer", help="Interactive key status viewer")
    viewer.set_defaults(func=cmd_viewer)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        return args.func(args)
    except GenerationError as e:
        console.print(f"[bold red]{e}[/bold red]")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
