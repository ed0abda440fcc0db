"""
Create a POS operator (login user).

The API has no public sign-up: operators are created from the command line.

    python scripts/create_operator.py --username caixa01 --name "Caixa 01" --password secret123

In development and test environments the tables are created first when
they do not exist yet. Anywhere else run `python migrate.py upgrade` before.
"""

# Add project root to sys.path so `bookstore_pos.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse

from bookstore_pos.common.exceptions import BookstoreError
from bookstore_pos.core.config import settings
from bookstore_pos.database.database import SessionLocal, init_db
from bookstore_pos.modules.auth.schemas import OperatorCreate
from bookstore_pos.modules.auth.service import AuthService


def main():
    parser = argparse.ArgumentParser(description="Create a POS operator")
    parser.add_argument("--username", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--password", required=True)
    args = parser.parse_args()

    if settings.ENVIRONMENT in ("development", "test"):
        init_db()
    db = SessionLocal()
    try:
        operator = AuthService(db).create_operator(
            OperatorCreate(username=args.username, name=args.name, password=args.password)
        )
        print(f"Operator created: {operator.username} (id={operator.id})")
    except BookstoreError as e:
        print(f"Error: {e.message}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
