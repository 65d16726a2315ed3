"""
Drop and recreate the local SQLite database.

Usage:
    python scripts/reset_local_db.py [--seed]
"""
import argparse
import os
import pathlib
import sys

from sqlalchemy.exc import SQLAlchemyError

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import database  # noqa: E402
import models  # noqa: F401,E402
from database import Base  # noqa: E402
from seed import seed_demo_data  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed", action="store_true", help="Insert demo users, consultant and working hours")
    args = parser.parse_args()

    url = database.DATABASE_URL
    if not url.startswith("sqlite:///"):
        print(f"Skipping reset: DATABASE_URL is not sqlite (got {url})")
        return 0

    db_path = pathlib.Path(url.replace("sqlite:///", "", 1)).resolve()
    database.engine.dispose()
    if db_path.exists():
        try:
            db_path.unlink()
            print(f"Removed existing DB file: {db_path}")
        except OSError as exc:
            print(f"Failed to remove {db_path}: {exc}")
            return 1
    else:
        print(f"No existing DB file at: {db_path} (skip remove)")

    try:
        Base.metadata.create_all(bind=database.engine)
        print("Created tables on fresh SQLite database.")
    except SQLAlchemyError as exc:
        print(f"Failed to create tables: {exc}")
        return 1

    if args.seed:
        os.environ["SEED_DEMO_DATA"] = "1"
        seed_demo_data()
        print("Seeded demo data.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
