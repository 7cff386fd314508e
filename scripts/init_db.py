"""Script to initialize the database without running migrations."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.database import engine  # noqa: E402
from app.models.appointments import metadata  # noqa: E402


async def init_db(drop_existing: bool = False) -> None:
    """Create the appointments schema, optionally dropping it first."""
    async with engine.begin() as conn:
        if drop_existing:
            await conn.run_sync(metadata.drop_all)
            print("✓ Existing tables dropped")

        # Create all tables
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db(drop_existing="--drop" in sys.argv[1:]))
