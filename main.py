"""Command-line interface for the user directory."""

from __future__ import annotations
import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Sequence

from userdir.client import UserDirectoryClient, UserDirectoryError
from userdir.config import Settings, load_settings
from userdir.models import UserDraft, UserRecord
from userdir.search import filter_users
from userdir.validation import validate_user

logger = logging.getLogger("userdir.main")

KNOWN_COMMANDS = {"serve", "list", "add", "delete"}
GLOBAL_OPTIONS = ("--config", "--api-url")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User directory utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (default: USERDIR_CONFIG or config/userdir.yaml)",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Override the base URL of the users collection",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the directory web interface")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the UI")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the web interface (default: 8000)",
    )

    list_parser = subparsers.add_parser("list", help="List users in the directory")
    list_parser.add_argument(
        "--search",
        default="",
        help="Only show users whose name or email contains this text",
    )

    add_parser = subparsers.add_parser("add", help="Create a new user")
    add_parser.add_argument("name", help="Display name (at least 2 characters)")
    add_parser.add_argument("email", help="Email address")
    add_parser.add_argument("age", help="Age between 1 and 150")

    delete_parser = subparsers.add_parser("delete", help="Delete a user by identifier")
    delete_parser.add_argument("user_id", help="Identifier of the user to delete")
    delete_parser.add_argument(
        "--yes",
        action="store_true",
        help="Delete without asking for confirmation",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]

    # Global options may precede the subcommand; bare serve options imply "serve".
    index = 0
    while index < len(args_list):
        option = args_list[index]
        if option in GLOBAL_OPTIONS:
            index += 2
        elif option.startswith(tuple(f"{name}=" for name in GLOBAL_OPTIONS)):
            index += 1
        else:
            break
    remaining = args_list[index:]
    if not remaining:
        args_list = [*args_list, "serve"]
    else:
        first = remaining[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in KNOWN_COMMANDS:
            if any(flag in remaining for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = [*args_list[:index], "serve", *remaining]

    return parser.parse_args(args_list)


def _load_settings(args: argparse.Namespace) -> Settings:
    config_path = Path(args.config).expanduser() if args.config else None
    settings = load_settings(config_path)
    if args.api_url:
        settings = replace(settings, api_url=args.api_url)
    return settings


def _serve(settings: Settings, *, host: str, port: int) -> None:
    from userdir.web import create_app
    import uvicorn

    logger.info("Starting directory UI on http://%s:%s", host, port)
    app = create_app(settings=settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _build_client(settings: Settings) -> UserDirectoryClient:
    return UserDirectoryClient(settings.api_url, timeout=settings.request_timeout)


def _print_users(users: List[UserRecord]) -> None:
    if not users:
        print("No users found.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':<26}  {'Name':<24}  {'Email':<32}  Age")
    print("-" * 92)
    for user in users:
        print(f"{user.id:<26}  {user.name:<24}  {user.email:<32}  {user.age}")


async def _list_users(client: UserDirectoryClient, search: str) -> int:
    envelope = await client.list_users()
    if not envelope.success:
        print(f"Failed to fetch users: {envelope.message or 'unknown error'}", file=sys.stderr)
        return 1
    _print_users(filter_users(envelope.data, search))
    return 0


async def _add_user(client: UserDirectoryClient, draft: UserDraft) -> int:
    errors = validate_user(draft)
    if errors:
        for field_name in ("name", "email", "age"):
            if field_name in errors:
                print(f"{field_name}: {errors[field_name]}", file=sys.stderr)
        return 1

    envelope = await client.create_user(draft)
    if not envelope.success:
        print(f"Error: {envelope.message or 'Operation failed'}", file=sys.stderr)
        return 1
    print(envelope.message or "User created.")
    return 0


async def _delete_user(client: UserDirectoryClient, user_id: str) -> int:
    envelope = await client.delete_user(user_id)
    if not envelope.success:
        print(f"Error: {envelope.message or 'Delete failed'}", file=sys.stderr)
        return 1
    print(envelope.message or "User deleted.")
    return 0


def _confirm(prompt: str) -> bool:
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


async def _run_client_command(args: argparse.Namespace, settings: Settings) -> int:
    async with _build_client(settings) as client:
        if args.command == "list":
            return await _list_users(client, args.search)
        if args.command == "add":
            return await _add_user(client, UserDraft(name=args.name, email=args.email, age=args.age))
        return await _delete_user(client, args.user_id)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    try:
        settings = _load_settings(args)
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    if args.command == "serve":
        _serve(settings, host=args.host, port=args.port)
        return 0

    if args.command == "delete" and not args.yes:
        if not _confirm(f"Delete user {args.user_id}? [y/N] "):
            print("Deletion cancelled.")
            return 0

    try:
        return asyncio.run(_run_client_command(args, settings))
    except UserDirectoryError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
