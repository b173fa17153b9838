from __future__ import annotations

import argparse
import getpass
import sys

from backend.roundtrack.errors import StoreConflictError
from backend.roundtrack.persistence import SqlitePersistence
from backend.roundtrack.settings import load_settings
from backend.roundtrack.store import InMemoryStore


def main() -> int:
    parser = argparse.ArgumentParser(description="Create an admin account in the configured database.")
    parser.add_argument("--name", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--phone", default=None)
    parser.add_argument("--password", default="", help="Prompted for when omitted.")
    args = parser.parse_args()

    settings = load_settings()
    if not settings.persistence_enabled:
        print("PERSISTENCE_ENABLED is false; an admin would not survive this process.", file=sys.stderr)
        return 1

    password = args.password or getpass.getpass("Admin password: ")
    store = InMemoryStore(persistence=SqlitePersistence(settings.database_url))
    try:
        admin = store.create_admin(
            name=args.name,
            email=args.email,
            password=password,
            phone=args.phone,
        )
    except StoreConflictError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    print(admin.id)
    return 0


if __name__ == "__main__":
    sys.exit(main())
