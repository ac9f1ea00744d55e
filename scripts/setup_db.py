#!/usr/bin/env python3
"""
Database setup script for insightwriter.

Creates the insightwriter database (PostgreSQL only) and all tables.
Reads INSIGHTWRITER_DATABASE_URL / DATABASE_URL like the application does.

Usage:
    python scripts/setup_db.py
"""
import asyncio

import asyncpg
from sqlalchemy.engine import make_url

from insightwriter.shared.database import (
    build_engine,
    check_db_connection,
    init_db,
    resolve_database_url,
)
from insightwriter.shared.models import Base


async def create_database(url: str):
    """Create the target PostgreSQL database if it doesn't exist."""
    target = make_url(url)
    conn = await asyncpg.connect(
        user=target.username,
        password=target.password,
        host=target.host or "localhost",
        port=target.port or 5432,
        database="postgres",
    )

    try:
        exists = await conn.fetchval(
            "SELECT 1 FROM pg_database WHERE datname = $1",
            target.database,
        )

        if not exists:
            await conn.execute(f'CREATE DATABASE "{target.database}"')
            print(f"✓ Created database: {target.database}")
        else:
            print(f"✓ Database already exists: {target.database}")

    finally:
        await conn.close()


async def main():
    url = resolve_database_url()

    print("=" * 60)
    print("INSIGHTWRITER DATABASE SETUP")
    print("=" * 60)
    print()

    if url.startswith("postgresql"):
        print("1. Creating database...")
        await create_database(url)
        print()

    engine = build_engine(url)
    try:
        print("2. Creating tables...")
        await init_db(engine)
        for table_name in Base.metadata.tables.keys():
            print(f"  - {table_name}")
        print()

        print("3. Checking connection...")
        ok = await check_db_connection(engine)
        print("✓ Connected" if ok else "✗ Connection failed")
        print()
    finally:
        await engine.dispose()

    print("=" * 60)
    print("✓ Setup complete!")
    print()
    print(f"Connection URL: {make_url(url).render_as_string(hide_password=True)}")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
