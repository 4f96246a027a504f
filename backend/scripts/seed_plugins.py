#!/usr/bin/env python3
"""
Register the shipped plugin manifests and their permissions.

The API does this at startup when CAS_PLUGINS_AUTO_SEED is true; this script
is for deployments that disable auto-seeding. Existing plugins keep their
status.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from cas.core.config import get_settings_instance  # noqa: E402
from cas.core.database import Database  # noqa: E402
from cas.core.logging import setup_logging  # noqa: E402
from cas.main import seed_plugin_catalog  # noqa: E402


async def main(create_tables: bool) -> None:
    setup_logging()
    settings = get_settings_instance()
    database = Database(settings)
    await database.connect()
    try:
        if create_tables:
            await database.create_all()
        result = await seed_plugin_catalog(database, settings)
    finally:
        await database.dispose()
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the CAS plugin catalog")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables from the ORM models first (development only; use alembic otherwise)",
    )
    asyncio.run(main(parser.parse_args().create_tables))
