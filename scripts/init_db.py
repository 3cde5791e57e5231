"""
Create all tables for a fresh development database.

Tables that already exist are left untouched; use Alembic for changes to
an existing schema.

Usage (from the repository root)::

    python -m scripts.init_db
"""

from __future__ import annotations

import asyncio

from sqlalchemy.ext.asyncio import create_async_engine

from src.core.config import settings
from src.models import Base


async def init_db() -> None:
    engine = create_async_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print(f"Created {len(Base.metadata.tables)} tables")


if __name__ == "__main__":
    asyncio.run(init_db())
