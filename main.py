"""Command-line interface for the user directory service."""

from __future__ import annotations

import argparse
import logging
import math
import sys
from typing import Dict, List, Optional, Sequence, Tuple

from userdirectory.client import UserAPIClient
from userdirectory.config import Settings, load_settings
from userdirectory.database import Database
from userdirectory.errors import (
    APIRequestError,
    DuplicateEmailError,
    UserDirectoryError,
    UserNotFoundError,
    UserValidationError,
)
from userdirectory.models import User

logger = logging.getLogger("userdirectory.main")

USERS_PER_PAGE = 5


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User directory utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the user database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP API (default: 3000)",
    )

    admin_parser = subparsers.add_parser(
        "admin", help="Launch the interactive user administration console"
    )
    admin_parser.add_argument(
        "--service-url",
        default=None,
        help="Base URL of a running user directory API (default: http://localhost:3000)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "admin", "init-db"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, database: Database, settings: Settings, host: str, port: int) -> None:
    from userdirectory.api import create_app
    import uvicorn

    logger.info("Starting user directory API on http://%s:%s", host, port)

    app = create_app(database=database, settings=settings, initialize_database=False)
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())


def paginate(users: Sequence[User], page: int, per_page: int = USERS_PER_PAGE) -> Tuple[List[User], int, int]:
    """Return the slice for ``page`` (1-based, clamped), the page used and the page count."""

    total_pages = max(1, math.ceil(len(users) / per_page))
    current = min(max(page, 1), total_pages)
    start = (current - 1) * per_page
    return list(users[start:start + per_page]), current, total_pages


def describe_error(exc: UserDirectoryError) -> str:
    """Turn a client error into a message suitable for the console."""

    if isinstance(exc, UserValidationError):
        lines = ["The data entered is invalid:"]
        for violation in exc.errors:
            field = violation.path or "payload"
            lines.append(f"  - {field}: {violation.message}")
        return "\n".join(lines)
    if isinstance(exc, DuplicateEmailError):
        if exc.email:
            return f"The email {exc.email} is already in use. Please use another email."
        return "This email is already in use. Please use another email."
    if isinstance(exc, UserNotFoundError):
        if exc.user_id is not None:
            return f"User {exc.user_id} not found. It may have been deleted already."
        return "User not found. It may have been deleted already."
    if isinstance(exc, APIRequestError):
        if exc.status_code is None:
            return f"Could not reach the user directory API: {exc}"
        return "The server failed to process the request. Please try again."
    return f"Unexpected error: {exc}"


def _print_user_table(users: Sequence[User]) -> None:
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  {'Role':<6}  Status")
    print("-" * 80)
    for user in users:
        print(
            f"{user.id:>4}  {user.name:<24}  {user.email:<32}  "
            f"{user.role.value:<6}  {user.status.value}"
        )


def _print_user(user: User) -> None:
    print(f"User #{user.id}")
    print(f"  Name:    {user.name}")
    print(f"  Email:   {user.email}")
    print(f"  Avatar:  {user.avatar or '<none>'}")
    print(f"  Role:    {user.role.value}")
    print(f"  Status:  {user.status.value}")
    print(f"  Created: {user.created_at.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    print(f"  Updated: {user.updated_at.strftime('%Y-%m-%d %H:%M:%S %Z')}")


def _prompt_user_id() -> Optional[int]:
    raw = input("User ID: ").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        print("Invalid ID format.")
        return None


def _list_users(client: UserAPIClient) -> None:
    users = client.list_users()
    if not users:
        print("No users are currently registered.")
        return

    page = 1
    while True:
        current_users, page, total_pages = paginate(users, page)
        print(f"\n{len(users)} user(s) found, page {page} of {total_pages}:")
        _print_user_table(current_users)
        if total_pages == 1:
            return
        choice = input("[n]ext, [p]revious, page number or Enter to return: ").strip().lower()
        if not choice:
            return
        if choice == "n":
            page += 1
        elif choice == "p":
            page -= 1
        elif choice.isdigit():
            page = int(choice)
        else:
            print("Invalid selection.")


def _view_user(client: UserAPIClient) -> None:
    user_id = _prompt_user_id()
    if user_id is None:
        return
    _print_user(client.get_user(user_id))


def _prompt_fields(existing: Optional[User] = None) -> Dict[str, str]:
    """Collect form fields; blank answers keep the current value when editing."""

    fields: Dict[str, str] = {}
    prompts = (
        ("name", "Name"),
        ("email", "Email"),
        ("avatar", "Avatar URL (blank for a generated one)"),
        ("role", "Role [admin/user]"),
        ("status", "Status [active/inactive]"),
    )
    for key, label in prompts:
        current = None
        if existing is not None:
            value = getattr(existing, key)
            current = value.value if hasattr(value, "value") else value
        suffix = f" [{current}]" if current else ""
        answer = input(f"{label}{suffix}: ").strip()
        if answer:
            fields[key] = answer
        elif key == "avatar" and existing is None:
            fields[key] = ""
    return fields


def _create_user(client: UserAPIClient) -> None:
    print("\nCreate a new user (role and status default to user/active).")
    fields = _prompt_fields()
    user = client.create_user(fields)
    print(f"Created user #{user.id}: {user.name} <{user.email}>")


def _edit_user(client: UserAPIClient) -> None:
    user_id = _prompt_user_id()
    if user_id is None:
        return
    existing = client.get_user(user_id)
    print("Leave a field blank to keep its current value.")
    fields = _prompt_fields(existing)
    if not fields:
        print("Nothing to update.")
        return
    user = client.update_user(user_id, fields)
    print(f"Updated user #{user.id}: {user.name} <{user.email}>")


def _delete_user(client: UserAPIClient) -> None:
    user_id = _prompt_user_id()
    if user_id is None:
        return
    confirm = input(f"Delete user #{user_id}? This cannot be undone [y/N]: ").strip().lower()
    if confirm not in {"y", "yes"}:
        print("Deletion cancelled.")
        return
    client.delete_user(user_id)
    print(f"Deleted user #{user_id}.")


def _run_admin_cli(client: UserAPIClient) -> None:
    """Provide an interactive console for managing users through the API."""

    actions = {
        "1": _list_users,
        "2": _view_user,
        "3": _create_user,
        "4": _edit_user,
        "5": _delete_user,
    }

    print("User Directory Administration Console")
    print("Press Ctrl+C at any time to exit.\n")

    try:
        while True:
            print("Select an option:")
            print("  1) List users")
            print("  2) View a user")
            print("  3) Add a new user")
            print("  4) Edit a user")
            print("  5) Delete a user")
            print("  6) Exit")

            choice = input("Enter choice [1-6]: ").strip()

            if choice == "6":
                print("Goodbye!")
                return

            action = actions.get(choice)
            if action is None:
                print("Invalid selection. Please choose a number from the menu.\n")
                continue

            try:
                action(client)
            except UserDirectoryError as exc:
                print(describe_error(exc))

            print()
    except KeyboardInterrupt:
        print("\nExiting administration console.")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    if args.command == "serve":
        database = _initialise_database(settings)
        _serve(
            database=database,
            settings=settings,
            host=args.host or settings.host,
            port=args.port or settings.port,
        )
    elif args.command == "admin":
        with UserAPIClient(args.service_url or settings.api_url) as client:
            _run_admin_cli(client)
    elif args.command == "init-db":
        _initialise_database(settings)
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
