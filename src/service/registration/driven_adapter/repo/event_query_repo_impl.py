"""Read-only access to the event catalog owned by the events service"""

from typing import Optional

from src.platform.database.asyncpg_setting import get_asyncpg_pool
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import IEventQueryRepo
from src.service.registration.domain.entity.event_entity import Event, EventLine, Resource


class EventQueryRepoImpl(IEventQueryRepo):
    @Logger.io
    async def get_by_id(self, *, event_id: str) -> Optional[Event]:
        async with (await get_asyncpg_pool()).acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, name, status, currency, rv_enabled, rv_unit_amount,
                       stall_enabled, stall_unit_amount
                FROM event
                WHERE id = $1
                """,
                event_id,
            )
        return Event(**dict(row)) if row else None

    @Logger.io
    async def list_event_lines(self, *, event_id: str) -> list[EventLine]:
        async with (await get_asyncpg_pool()).acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, event_id, class_id, name, fee_amount, capacity
                FROM event_line
                WHERE event_id = $1
                ORDER BY id
                """,
                event_id,
            )
        return [EventLine(**dict(row)) for row in rows]

    @Logger.io
    async def list_resources(self, *, resource_ids: list[str]) -> list[Resource]:
        if not resource_ids:
            return []
        async with (await get_asyncpg_pool()).acquire() as conn:
            rows = await conn.fetch(
                'SELECT id, resource_type, name, tags FROM resource WHERE id = ANY($1::text[])',
                resource_ids,
            )
        return [
            Resource(
                id=row['id'],
                resource_type=row['resource_type'],
                name=row['name'],
                tags=list(row['tags'] or []),
            )
            for row in rows
        ]
