from __future__ import annotations

import argparse
import asyncio

from app.db.session import SessionLocal, engine, transaction
from app.models import Base
from app.services.status_catalog import seed_status_catalog


async def _run(create_tables: bool) -> None:
    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as session:
        async with transaction(session):
            await seed_status_catalog(session)
    await engine.dispose()
    print("Status catalog seeded.")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables before seeding.")
    args = parser.parse_args()
    asyncio.run(_run(args.create_tables))


if __name__ == "__main__":
    main()
