import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from userdirectory.database import Database, resolve_database_path
from userdirectory.errors import DuplicateEmailError, UserValidationError
from userdirectory.service import UserService


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a user directly in the user directory database")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address")
    parser.add_argument("--avatar", default=None, help="Avatar URL (stored as given)")
    parser.add_argument("--role", default=None, choices=["admin", "user"], help="Role (default: user)")
    parser.add_argument(
        "--status",
        default=None,
        choices=["active", "inactive"],
        help="Status (default: active)",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to USERS_DB_PATH or data/users.sqlite3)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    db_env = args.db_path or os.getenv("USERS_DB_PATH")
    db_path = resolve_database_path(db_env)

    database = Database(db_path)
    database.initialize()
    service = UserService(database)

    payload = {"name": args.name.strip(), "email": args.email.strip()}
    for key in ("avatar", "role", "status"):
        value = getattr(args, key)
        if value is not None:
            payload[key] = value

    try:
        user = service.create_user(payload)
    except UserValidationError as exc:
        for violation in exc.errors:
            print(f"Error: {violation.path}: {violation.message}", file=sys.stderr)
        return 1
    except DuplicateEmailError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.name} <{user.email}> ({user.role.value}, {user.status.value})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
