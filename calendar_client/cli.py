"""Command-line interface for calendar-client."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import os
import sys

from pathlib import Path
from typing import TYPE_CHECKING, Any

from .exceptions import CalendarClientError
from .log import configure


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .client import CalendarClient
    from .config import ClientSettings


def main(argv: list[str] | None = None) -> int:
    """Run the main CLI entry point.

    Returns
    -------
    int
        Exit code.
    """
    parser = argparse.ArgumentParser(
        prog="calendar-client",
        description="Calendar service client and session tools",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # config command
    config_parser = subparsers.add_parser("config", help="Show or export configuration")
    config_group = config_parser.add_mutually_exclusive_group()
    config_group.add_argument(
        "--show", action="store_true", help="Show current configuration"
    )
    config_group.add_argument(
        "--toml", action="store_true", help="Export configuration as TOML"
    )
    config_group.add_argument(
        "--env", action="store_true", help="Export configuration as environment variables"
    )
    config_group.add_argument(
        "--sources", action="store_true", help="Show configuration file sources"
    )
    config_parser.add_argument(
        "--output", "-o", type=str, help="Output file path (default: stdout)"
    )

    # session commands
    login_parser = subparsers.add_parser("login", help="Log in and store the session")
    login_parser.add_argument("--email", "-e", required=True, help="Account email")
    login_parser.add_argument(
        "--password", "-p", help="Account password (prompted for when omitted)"
    )
    subparsers.add_parser("logout", help="End the session and erase stored credentials")
    subparsers.add_parser("status", help="Show the stored session status")
    subparsers.add_parser("refresh", help="Exchange the refresh token for a new pair")

    # events command
    events_parser = subparsers.add_parser("events", help="List calendar events as JSON")
    events_parser.add_argument("--start", required=True, help="ISO start date")
    events_parser.add_argument("--end", required=True, help="ISO end date")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    from .config import get_settings

    settings = get_settings()
    configure(settings.log)

    if args.command == "config":
        return handle_config(args, settings)

    handlers: dict[str, Callable[[CalendarClient, argparse.Namespace], Awaitable[int]]] = {
        "login": _login,
        "logout": _logout,
        "status": _status,
        "refresh": _refresh,
        "events": _events,
    }
    return run_session_command(handlers[args.command], args, settings)


def handle_config(args: argparse.Namespace, settings: ClientSettings) -> int:
    """Handle the config command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.
    settings : ClientSettings
        The active settings.

    Returns
    -------
    int
        Exit code.
    """
    if args.sources:
        return show_config_sources()

    if args.toml:
        output = settings.to_toml()
    elif args.env:
        output = settings.to_env()
    else:
        output = settings.show()

    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        print(f"Configuration written to {args.output}")
    else:
        print(output)

    return 0


def show_config_sources() -> int:
    """Show configuration file sources and their status.

    Returns
    -------
    int
        Exit code.
    """
    from .config import config_sources

    found = config_sources()
    print("Configuration Sources (in order of precedence):\n")
    print("  Built-in defaults")
    if found:
        for path in found:
            print(f"  {path}")
    else:
        print("  (no configuration files found)")

    env_vars = sorted(k for k in os.environ if k.startswith("CALENDAR_CLIENT_"))
    if env_vars:
        print(f"  Environment variables: {', '.join(env_vars)}")

    print("\nNote: Later sources override earlier ones.")
    return 0


def run_session_command(
    handler: Callable[[CalendarClient, argparse.Namespace], Awaitable[int]],
    args: argparse.Namespace,
    settings: ClientSettings,
) -> int:
    """Run an async command against a freshly built client.

    Returns
    -------
    int
        The handler's exit code, or 1 if it raised a client error.
    """
    from .client import CalendarClient

    async def _run() -> int:
        async with CalendarClient(settings) as client:
            return await handler(client, args)

    try:
        return asyncio.run(_run())
    except CalendarClientError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


async def _login(client: CalendarClient, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    await client.session.login(args.email, password)
    organization = client.session.session.organization_id
    suffix = f" (organization {organization})" if organization else ""
    print(f"Logged in as {args.email}{suffix}")
    return 0


async def _logout(client: CalendarClient, args: argparse.Namespace) -> int:
    client.session.logout()
    print("Logged out")
    return 0


async def _status(client: CalendarClient, args: argparse.Namespace) -> int:
    session = client.session.session
    print(f"status: {session.status.value}")
    if session.organization_id:
        print(f"organization: {session.organization_id}")
    return 0


async def _refresh(client: CalendarClient, args: argparse.Namespace) -> int:
    await client.session.refresh()
    print("Session refreshed")
    return 0


async def _events(client: CalendarClient, args: argparse.Namespace) -> int:
    result: Any = await client.calendar.get_events(args.start, args.end)
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
