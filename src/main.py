"""
Production FastAPI Application

Registration engine API plus the optional background expiration sweeper.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from src.platform.app_factory import create_app
from src.platform.config.core_setting import settings
from src.platform.config.di import container
from src.platform.config.wire_modules import WIRE_MODULES
from src.platform.database.asyncpg_setting import close_all_asyncpg_pools, get_asyncpg_pool
from src.platform.logging.loguru_io import Logger
from src.platform.observability.tracing import TracingConfig
from src.platform.state.kvrocks_client import kvrocks_client
from src.service.registration.app.command.expire_registration_holds_use_case import (
    ExpireRegistrationHoldsUseCase,
)


async def run_expiration_sweeper(*, interval_seconds: float) -> None:
    """Periodic sweep; a failed round is logged and the loop keeps going"""
    use_case = ExpireRegistrationHoldsUseCase(
        registration_repo=container.registration_repo(),
        registration_release_service=container.registration_release_service(),
    )
    Logger.base.info(f'⏰ [EXPIRE] Background sweeper every {interval_seconds}s')
    while True:
        await anyio.sleep(interval_seconds)
        try:
            await use_case.sweep()
        except Exception as e:
            Logger.base.exception(f'❌ [EXPIRE] Sweep round failed: {e}')


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan: startup and shutdown."""
    Logger.base.info('🚀 [Registration Service] Starting up...')

    tracing = TracingConfig(service_name=settings.SERVICE_NAME)
    tracing.setup()
    tracing.instrument_asyncpg()
    tracing.instrument_redis()
    Logger.base.info('📊 [Registration Service] OpenTelemetry tracing configured')

    container.wire(modules=WIRE_MODULES)
    Logger.base.info('🔌 [Registration Service] Dependency injection wired')

    # Fail-fast on both stores
    await kvrocks_client.initialize()
    Logger.base.info('📡 [Registration Service] Kvrocks initialized')

    await get_asyncpg_pool()
    Logger.base.info('🏊 [Registration Service] Asyncpg pool initialized')

    async with anyio.create_task_group() as tg:
        if settings.EXPIRATION_SWEEP_INTERVAL_SECONDS > 0:
            tg.start_soon(
                lambda: run_expiration_sweeper(
                    interval_seconds=settings.EXPIRATION_SWEEP_INTERVAL_SECONDS
                )
            )
        Logger.base.info('✅ [Registration Service] Ready to serve requests')

        yield

        Logger.base.info('🛑 [Registration Service] Shutting down...')
        tg.cancel_scope.cancel()

    await close_all_asyncpg_pools()
    Logger.base.info('🏊 [Registration Service] Asyncpg pools closed')

    await kvrocks_client.disconnect()
    Logger.base.info('📡 [Registration Service] Kvrocks disconnected')

    tracing.shutdown()
    container.unwire()
    Logger.base.info('👋 [Registration Service] Shutdown complete')


app = create_app(lifespan=lifespan)


@app.get('/')
async def root() -> RedirectResponse:
    """Root endpoint - redirect to docs."""
    return RedirectResponse(url='/docs')
