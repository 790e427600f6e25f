"""
Reservation Hold Repository Implementation (PostgreSQL / asyncpg)

A partial unique index on (scope_id, item_type, resource_id) for active stall
and RV holds is the store-level guard against two owners winning the same
physical resource.
"""

from typing import Any, Optional

import asyncpg
from opentelemetry import trace

from src.platform.database.asyncpg_setting import get_asyncpg_pool
from src.platform.exception.exceptions import ResourceConflictError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import HoldFilter, IReservationHoldRepo
from src.service.registration.domain.entity.reservation_hold_entity import ReservationHold
from src.service.registration.domain.enum import ErrorCode


def build_hold_where(hold_filter: HoldFilter) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []

    def bind(value: Any) -> str:
        params.append(value)
        return f'${len(params)}'

    if hold_filter.owner is not None:
        clauses.append(f'owner_type = {bind(hold_filter.owner.type)}')
        clauses.append(f'owner_id = {bind(hold_filter.owner.id)}')
    if hold_filter.scope is not None:
        clauses.append(f'scope_type = {bind(hold_filter.scope.type)}')
        clauses.append(f'scope_id = {bind(hold_filter.scope.id)}')
    if hold_filter.item_type is not None:
        clauses.append(f'item_type = {bind(str(hold_filter.item_type))}')
    if hold_filter.states is not None:
        clauses.append(f'state = ANY({bind([str(state) for state in hold_filter.states])}::text[])')
    if hold_filter.resource_id is not None:
        clauses.append(f'resource_id = {bind(hold_filter.resource_id)}')
    if hold_filter.block_only:
        clauses.append('resource_id IS NULL')

    return (' AND '.join(clauses) or 'TRUE'), params


class ReservationHoldRepoImpl(IReservationHoldRepo):
    def __init__(self) -> None:
        self.tracer = trace.get_tracer(__name__)

    @staticmethod
    def _row_to_entity(row: asyncpg.Record) -> ReservationHold:
        return ReservationHold(
            id=row['id'],
            owner_type=row['owner_type'],
            owner_id=row['owner_id'],
            scope_type=row['scope_type'],
            scope_id=row['scope_id'],
            item_type=row['item_type'],
            qty=row['qty'],
            held_at=row['held_at'],
            resource_id=row['resource_id'],
            state=row['state'],
            confirmed_at=row['confirmed_at'],
            released_at=row['released_at'],
            release_reason=row['release_reason'],
            expires_at=row['expires_at'],
            metadata=row['metadata'] or {},
        )

    @Logger.io
    async def get_by_id(self, *, hold_id: str) -> Optional[ReservationHold]:
        async with (await get_asyncpg_pool()).acquire() as conn:
            row = await conn.fetchrow('SELECT * FROM reservation_hold WHERE id = $1', hold_id)
        return self._row_to_entity(row) if row else None

    @Logger.io
    async def list_holds(
        self, *, hold_filter: HoldFilter, limit: int = 200
    ) -> list[ReservationHold]:
        where, params = build_hold_where(hold_filter)
        params.append(limit)
        async with (await get_asyncpg_pool()).acquire() as conn:
            rows = await conn.fetch(
                f'SELECT * FROM reservation_hold WHERE {where} '
                f'ORDER BY held_at DESC, id DESC LIMIT ${len(params)}',
                *params,
            )
        return [self._row_to_entity(row) for row in rows]

    @Logger.io
    async def create(self, *, hold: ReservationHold) -> ReservationHold:
        with self.tracer.start_as_current_span(
            'repo.create_hold',
            attributes={'hold.id': hold.id, 'hold.item_type': str(hold.item_type)},
        ):
            try:
                async with (await get_asyncpg_pool()).acquire() as conn:
                    row = await conn.fetchrow(
                        """
                        INSERT INTO reservation_hold (
                            id, owner_type, owner_id, scope_type, scope_id, item_type,
                            resource_id, qty, state, held_at, confirmed_at, released_at,
                            release_reason, expires_at, metadata
                        )
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)
                        RETURNING *
                        """,
                        hold.id,
                        hold.owner_type,
                        hold.owner_id,
                        hold.scope_type,
                        hold.scope_id,
                        str(hold.item_type),
                        hold.resource_id,
                        hold.qty,
                        str(hold.state),
                        hold.held_at,
                        hold.confirmed_at,
                        hold.released_at,
                        hold.release_reason,
                        hold.expires_at,
                        hold.metadata,
                    )
            except asyncpg.UniqueViolationError as e:
                raise ResourceConflictError(
                    f'{hold.item_type} {hold.resource_id} already has an active hold',
                    code=ErrorCode.RESOURCE_ALREADY_ASSIGNED,
                    details={'resource_id': hold.resource_id},
                ) from e
            return self._row_to_entity(row)

    @Logger.io
    async def update(self, *, hold: ReservationHold) -> ReservationHold:
        async with (await get_asyncpg_pool()).acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE reservation_hold
                SET state = $2, confirmed_at = $3, released_at = $4, release_reason = $5
                WHERE id = $1
                RETURNING *
                """,
                hold.id,
                str(hold.state),
                hold.confirmed_at,
                hold.released_at,
                hold.release_reason,
            )
        if row is None:
            raise ValueError(f'Reservation hold {hold.id} does not exist')
        return self._row_to_entity(row)
