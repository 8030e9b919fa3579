# scripts/init_db.py
import asyncio

from mlshub.db import create_tables


async def main() -> None:
    await create_tables()
    print("OK: created cache_entries + custom_providers (idempotent).")


if __name__ == "__main__":
    asyncio.run(main())
