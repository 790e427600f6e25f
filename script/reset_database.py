#!/usr/bin/env python3
"""
Database Reset Script
Reset PostgreSQL database structure

Features:
1. Drop & Recreate Database - completely wipe the database
2. Run Alembic Migrations - create the latest schema
3. Clear Capacity Counters - drop the per-event `cap:`/`reserved:` hashes

Notes:
- This script only resets database structure, does not seed test data
- To seed test data, run `python script/seed_data.py`
"""

import asyncio
import os
import subprocess

import asyncpg
import redis.asyncio as aioredis

from src.platform.config.core_setting import settings
from src.platform.constant.path import BASE_DIR
from src.service.registration.driven_adapter.state.kvrocks_capacity_counter_impl import capacity_key


def _server_dsn() -> str:
    """DSN of the maintenance database on the same server"""
    dsn = settings.DATABASE_URL_ASYNC.replace('postgresql+asyncpg://', 'postgresql://')
    return dsn.rsplit('/', 1)[0] + '/postgres'


async def _drop_and_create_db(db_name: str) -> None:
    conn = await asyncpg.connect(_server_dsn())
    try:
        await conn.execute(
            """
            SELECT pg_terminate_backend(pid)
            FROM pg_stat_activity
            WHERE datname = $1 AND pid <> pg_backend_pid()
            """,
            db_name,
        )
        await conn.execute(f'DROP DATABASE IF EXISTS "{db_name}"')
        print(f"   ✅ Database '{db_name}' dropped")
        await conn.execute(f'CREATE DATABASE "{db_name}"')
        print(f"   ✅ Database '{db_name}' created")
    finally:
        await conn.close()


def _run_alembic_migrations() -> None:
    """Run Alembic migrations"""
    print("   🔄 Running 'alembic upgrade head'...")

    result = subprocess.run(
        ['alembic', 'upgrade', 'head'],
        cwd=BASE_DIR,
        capture_output=True,
        text=True,
        env=os.environ.copy(),
    )

    if result.returncode != 0:
        print(f'   ❌ Migration failed (return code: {result.returncode})')
        if result.stdout:
            print(f'   📋 STDOUT: {result.stdout}')
        if result.stderr:
            print(f'   📋 STDERR: {result.stderr}')
        raise Exception(f'Alembic migration failed with return code {result.returncode}')

    print('   ✅ Database migrations completed')


async def clear_capacity_counters() -> None:
    """Drop every per-event capacity hash under this service's key prefix"""
    pattern = capacity_key('*')
    try:
        print(f'🗑️  Clearing capacity counters ({pattern})...')
        client = aioredis.from_url(
            f'redis://{settings.KVROCKS_HOST}:{settings.KVROCKS_PORT}/{settings.KVROCKS_DB}',
            password=settings.KVROCKS_PASSWORD or None,
            decode_responses=True,
        )
        deleted = 0
        async for key in client.scan_iter(match=pattern, count=500):
            deleted += await client.delete(key)
        await client.aclose()
        print(f'✅ Removed {deleted} capacity hash(es)')
    except Exception as e:
        print(f'⚠️  Failed to clear capacity counters (non-critical): {e}')


async def main() -> None:
    print('🔄 Starting database reset...')
    print('=' * 50)

    try:
        print('🗑️ Dropping database...')
        await _drop_and_create_db(settings.POSTGRES_DB)
        print('🏗️ Running database migrations...')
        _run_alembic_migrations()
        print()

        await clear_capacity_counters()
        print()

        print('=' * 50)
        print('✅ Database reset completed!')
        print('💡 To seed test data, run: python script/seed_data.py')

    except Exception as e:
        print(f'❌ Reset failed: {e}')
        exit(1)


if __name__ == '__main__':
    asyncio.run(main())
