"""Create all RentHive tables in the configured database (DATABASE_URL)."""
import asyncio

from renthive.core.config import get_settings
from renthive.core.database import Base, close_db, init_db


async def create_tables():
    """Create every table registered on Base."""
    await init_db()
    await close_db()

    # Never print credentials from the URL
    print(f"Database: {get_settings().database_url.split('@')[-1]}")
    print(f"Registered tables: {len(Base.metadata.tables)}")
    for table in Base.metadata.tables:
        print(f"   - {table}")

    print("\nAll tables created.")


if __name__ == "__main__":
    asyncio.run(create_tables())
