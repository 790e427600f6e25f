import asyncio

import asyncpg
import orjson

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger


# Global connection pools per event loop
asyncpg_pools: dict[int, asyncpg.Pool] = {}


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Encode/decode JSONB columns with orjson on every pooled connection"""
    await conn.set_type_codec(
        'jsonb',
        encoder=lambda value: orjson.dumps(value).decode(),
        decoder=orjson.loads,
        schema='pg_catalog',
    )


async def get_asyncpg_pool() -> asyncpg.Pool:
    current_loop = asyncio.get_running_loop()
    loop_id = id(current_loop)

    # Fast path: pool already exists for this loop
    if loop_id in asyncpg_pools:
        return asyncpg_pools[loop_id]

    # Slow path: create new pool (should only happen at startup)
    dsn = settings.DATABASE_URL_ASYNC.replace('postgresql+asyncpg://', 'postgresql://')
    pool = await asyncpg.create_pool(
        dsn,
        min_size=settings.ASYNCPG_POOL_MIN_SIZE,
        max_size=settings.ASYNCPG_POOL_MAX_SIZE,
        command_timeout=settings.ASYNCPG_POOL_COMMAND_TIMEOUT,
        timeout=settings.ASYNCPG_POOL_TIMEOUT,
        init=_init_connection,
    )
    asyncpg_pools[loop_id] = pool

    Logger.base.info(
        f'🗄️ [Pool] Created asyncpg pool (min={settings.ASYNCPG_POOL_MIN_SIZE}, '
        f'max={settings.ASYNCPG_POOL_MAX_SIZE})'
    )
    return pool


async def close_all_asyncpg_pools() -> None:
    """Close every pool; only call during application shutdown"""
    for loop_id, pool in list(asyncpg_pools.items()):
        try:
            await pool.close()
        except Exception as e:
            Logger.base.warning(f'⚠️ [Pool] Failed to close pool for loop {loop_id}: {e}')
    asyncpg_pools.clear()
