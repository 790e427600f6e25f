"""
Ticket Repository Implementation (PostgreSQL / asyncpg)

Ticket ids are derived from the issuing idempotency key, so the primary key
doubles as the replay guard: a second insert under the same id is a no-op.
"""

from typing import Optional

import asyncpg
from opentelemetry import trace

from src.platform.database.asyncpg_setting import get_asyncpg_pool
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import ITicketRepo
from src.service.registration.domain.entity.ticket_entity import Ticket


class TicketRepoImpl(ITicketRepo):
    def __init__(self) -> None:
        self.tracer = trace.get_tracer(__name__)

    @staticmethod
    def _row_to_entity(row: asyncpg.Record) -> Ticket:
        return Ticket(
            id=row['id'],
            event_id=row['event_id'],
            registration_id=row['registration_id'],
            ticket_type=row['ticket_type'],
            status=row['status'],
            qr_text=row['qr_text'],
            issued_at=row['issued_at'],
            issued_by=row['issued_by'],
            used_at=row['used_at'],
        )

    @Logger.io
    async def get_by_id(self, *, ticket_id: str) -> Optional[Ticket]:
        async with (await get_asyncpg_pool()).acquire() as conn:
            row = await conn.fetchrow('SELECT * FROM ticket WHERE id = $1', ticket_id)
        return self._row_to_entity(row) if row else None

    @Logger.io
    async def create_if_absent(self, *, ticket: Ticket) -> Ticket:
        with self.tracer.start_as_current_span(
            'repo.create_ticket',
            attributes={'ticket.id': ticket.id, 'registration.id': ticket.registration_id},
        ):
            async with (await get_asyncpg_pool()).acquire() as conn:
                row = await conn.fetchrow(
                    """
                    WITH inserted AS (
                        INSERT INTO ticket (
                            id, event_id, registration_id, ticket_type, status,
                            qr_text, issued_at, issued_by, used_at
                        )
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                        ON CONFLICT (id) DO NOTHING
                        RETURNING *
                    )
                    SELECT * FROM inserted
                    UNION ALL
                    SELECT * FROM ticket WHERE id = $1
                    LIMIT 1
                    """,
                    ticket.id,
                    ticket.event_id,
                    ticket.registration_id,
                    str(ticket.ticket_type),
                    str(ticket.status),
                    ticket.qr_text,
                    ticket.issued_at,
                    ticket.issued_by,
                    ticket.used_at,
                )
            return self._row_to_entity(row)
