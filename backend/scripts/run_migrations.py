#!/usr/bin/env python3
"""
Database migration runner for the CAS backend.

This script handles database migrations using Alembic.
"""

import argparse
import subprocess
import sys
from pathlib import Path

# Add the src directory to the path
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))


def run_alembic(*args: str) -> str:
    """Run an alembic command from the backend directory and return its output."""
    cmd = ["alembic", *args]
    try:
        result = subprocess.run(cmd, cwd=project_root, capture_output=True, text=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"Error running command: {' '.join(cmd)}")
        print(f"Error output: {e.stderr}")
        raise
    return result.stdout


def check_database_url() -> None:
    """Check if database URL is configured."""
    from cas.core.config import get_settings_instance
    from cas.core.database import describe_database_url

    try:
        settings = get_settings_instance()
    except Exception as e:  # noqa: BLE001
        print(f"Error checking database configuration: {e}")
        print("Please set CAS_DATABASE_URL environment variable or configure it in .env file")
        sys.exit(1)
    print(f"Database: {describe_database_url(settings.database_url)}")


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="CAS Database Migration Tool")
    parser.add_argument(
        "command",
        choices=["create", "upgrade", "downgrade", "history", "current", "check"],
        help="Migration command to run",
    )
    parser.add_argument("--message", "-m", help="Migration message (for create command)")
    parser.add_argument("--revision", "-r", help="Target revision (for upgrade/downgrade)")

    args = parser.parse_args()
    check_database_url()

    try:
        if args.command == "create":
            if not args.message:
                print("Error: Migration message is required for create command")
                sys.exit(1)
            print(run_alembic("revision", "--autogenerate", "-m", args.message))
        elif args.command == "upgrade":
            print(run_alembic("upgrade", args.revision or "head"))
        elif args.command == "downgrade":
            if not args.revision:
                print("Error: Revision is required for downgrade command")
                sys.exit(1)
            print(run_alembic("downgrade", args.revision))
        elif args.command == "history":
            print(run_alembic("history", "--verbose"))
        elif args.command == "current":
            print(run_alembic("current"))
        elif args.command == "check":
            print("Database configuration is valid")
    except subprocess.CalledProcessError:
        sys.exit(1)

    print("Migration command completed successfully")


if __name__ == "__main__":
    main()
