import argparse
import asyncio
import os

from meetmind.infra.sql import make_async_engine
from meetmind.model.db import Base
from meetmind.model.orders import seed_orders


async def main(database_url: str, create_tables: bool) -> None:
    engine, SessionAsync = make_async_engine(database_url)
    try:
        if create_tables:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        async with SessionAsync() as db:
            inserted = await seed_orders(db)
        for o in inserted:
            print(f"   {o.id}  {o.customer_name:<16} {o.product_name:<24} "
                  f"${o.amount / 100:>8.2f}  {o.status}")
        print(f'✅ seeded {len(inserted)} orders')
    finally:
        await engine.dispose()


if __name__ == '__main__':
    ap = argparse.ArgumentParser(description="Insert the dummy orders")
    ap.add_argument("--database-url", default=os.getenv("DATABASE_URL"),
                    help="defaults to $DATABASE_URL")
    ap.add_argument("--create-tables", action="store_true",
                    help="create missing tables first")
    args = ap.parse_args()
    if not args.database_url:
        ap.error("NEED DATABASE_URL (or --database-url)")
    asyncio.run(main(args.database_url, args.create_tables))
