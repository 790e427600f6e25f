"""
Registration Repository Implementation (PostgreSQL / asyncpg)

Every write bumps `version`; `update_if_version` turns that into a
compare-and-swap for the sweeper and check-in.
"""

from typing import Any, Optional

import asyncpg
from opentelemetry import trace

from src.platform.database.asyncpg_setting import get_asyncpg_pool
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import IRegistrationRepo
from src.service.registration.domain.entity.registration_entity import (
    Registration,
    RegistrationLine,
)
from src.service.registration.domain.enum import RegistrationStatus
from src.service.registration.domain.value_object import CheckInStatus, FeeLine


# Columns written on update, in positional order after id
_MUTABLE_COLUMNS = (
    'status',
    'payment_status',
    'stall_qty',
    'rv_qty',
    'lines',
    'party_email',
    'party_phone',
    'fees',
    'total_amount',
    'currency',
    'payment_intent_id',
    'payment_intent_client_secret',
    'checkout_idempotency_key',
    'submitted_at',
    'hold_expires_at',
    'confirmed_at',
    'cancelled_at',
    'refunded_at',
    'refund_id',
    'confirmation_message_id',
    'confirmation_sms_message_id',
    'confirmation_resend_count',
    'confirmation_resent_at',
    'check_in_status',
    'check_in_status_idempotency_key',
    'checked_in_at',
    'checked_in_by',
    'check_in_idempotency_key',
    'updated_at',
)

_SET_CLAUSE = ', '.join(f'{column} = ${i}' for i, column in enumerate(_MUTABLE_COLUMNS, start=2))
_VERSION_PARAM = f'${len(_MUTABLE_COLUMNS) + 2}'


def _column_values(registration: Registration) -> list[Any]:
    return [
        str(registration.status),
        str(registration.payment_status) if registration.payment_status else None,
        registration.stall_qty,
        registration.rv_qty,
        [{'class_id': line.class_id, 'qty': line.qty} for line in registration.lines],
        registration.party_email,
        registration.party_phone,
        [fee.to_dict() for fee in registration.fees],
        registration.total_amount,
        registration.currency,
        registration.payment_intent_id,
        registration.payment_intent_client_secret,
        registration.checkout_idempotency_key,
        registration.submitted_at,
        registration.hold_expires_at,
        registration.confirmed_at,
        registration.cancelled_at,
        registration.refunded_at,
        registration.refund_id,
        registration.confirmation_message_id,
        registration.confirmation_sms_message_id,
        registration.confirmation_resend_count,
        registration.confirmation_resent_at,
        registration.check_in_status.to_dict() if registration.check_in_status else None,
        registration.check_in_status_idempotency_key,
        registration.checked_in_at,
        registration.checked_in_by,
        registration.check_in_idempotency_key,
        registration.updated_at,
    ]


class RegistrationRepoImpl(IRegistrationRepo):
    def __init__(self) -> None:
        self.tracer = trace.get_tracer(__name__)

    @staticmethod
    def _row_to_entity(row: asyncpg.Record) -> Registration:
        check_in_status = row['check_in_status']
        return Registration(
            id=row['id'],
            event_id=row['event_id'],
            status=row['status'],
            payment_status=row['payment_status'],
            stall_qty=row['stall_qty'],
            rv_qty=row['rv_qty'],
            lines=[RegistrationLine(**line) for line in row['lines'] or []],
            party_email=row['party_email'],
            party_phone=row['party_phone'],
            fees=[FeeLine.from_dict(fee) for fee in row['fees'] or []],
            total_amount=row['total_amount'],
            currency=row['currency'],
            payment_intent_id=row['payment_intent_id'],
            payment_intent_client_secret=row['payment_intent_client_secret'],
            checkout_idempotency_key=row['checkout_idempotency_key'],
            submitted_at=row['submitted_at'],
            hold_expires_at=row['hold_expires_at'],
            confirmed_at=row['confirmed_at'],
            cancelled_at=row['cancelled_at'],
            refunded_at=row['refunded_at'],
            refund_id=row['refund_id'],
            confirmation_message_id=row['confirmation_message_id'],
            confirmation_sms_message_id=row['confirmation_sms_message_id'],
            confirmation_resend_count=row['confirmation_resend_count'],
            confirmation_resent_at=row['confirmation_resent_at'],
            check_in_status=CheckInStatus.from_dict(check_in_status) if check_in_status else None,
            check_in_status_idempotency_key=row['check_in_status_idempotency_key'],
            checked_in_at=row['checked_in_at'],
            checked_in_by=row['checked_in_by'],
            check_in_idempotency_key=row['check_in_idempotency_key'],
            version=row['version'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )

    @Logger.io
    async def get_by_id(self, *, registration_id: str) -> Optional[Registration]:
        async with (await get_asyncpg_pool()).acquire() as conn:
            row = await conn.fetchrow('SELECT * FROM registration WHERE id = $1', registration_id)
        return self._row_to_entity(row) if row else None

    @Logger.io
    async def create(self, *, registration: Registration) -> Registration:
        with self.tracer.start_as_current_span(
            'repo.create_registration', attributes={'registration.id': registration.id}
        ):
            columns = ('id', 'event_id', *_MUTABLE_COLUMNS, 'version', 'created_at')
            placeholders = ', '.join(f'${i}' for i in range(1, len(columns) + 1))
            async with (await get_asyncpg_pool()).acquire() as conn:
                row = await conn.fetchrow(
                    f'INSERT INTO registration ({", ".join(columns)}) '
                    f'VALUES ({placeholders}) RETURNING *',
                    registration.id,
                    registration.event_id,
                    *_column_values(registration),
                    registration.version,
                    registration.created_at,
                )
            return self._row_to_entity(row)

    @Logger.io
    async def update(self, *, registration: Registration) -> Registration:
        with self.tracer.start_as_current_span(
            'repo.update_registration', attributes={'registration.id': registration.id}
        ):
            async with (await get_asyncpg_pool()).acquire() as conn:
                row = await conn.fetchrow(
                    f'UPDATE registration SET {_SET_CLAUSE}, version = version + 1 '
                    f'WHERE id = $1 RETURNING *',
                    registration.id,
                    *_column_values(registration),
                )
            if row is None:
                raise ValueError(f'Registration {registration.id} does not exist')
            return self._row_to_entity(row)

    @Logger.io
    async def update_if_version(
        self, *, registration: Registration, expected_version: int
    ) -> Optional[Registration]:
        with self.tracer.start_as_current_span(
            'repo.update_registration_if_version',
            attributes={'registration.id': registration.id, 'expected_version': expected_version},
        ):
            async with (await get_asyncpg_pool()).acquire() as conn:
                row = await conn.fetchrow(
                    f'UPDATE registration SET {_SET_CLAUSE}, version = version + 1 '
                    f'WHERE id = $1 AND version = {_VERSION_PARAM} RETURNING *',
                    registration.id,
                    *_column_values(registration),
                    expected_version,
                )
            return self._row_to_entity(row) if row else None

    @Logger.io
    async def list_by_status(
        self, *, status: RegistrationStatus, limit: int
    ) -> list[Registration]:
        async with (await get_asyncpg_pool()).acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM registration
                WHERE status = $1
                ORDER BY hold_expires_at ASC NULLS LAST, created_at ASC
                LIMIT $2
                """,
                str(status),
                limit,
            )
        return [self._row_to_entity(row) for row in rows]

    @Logger.io
    async def list_by_event(
        self, *, event_id: str, status: Optional[RegistrationStatus] = None, limit: int
    ) -> list[Registration]:
        async with (await get_asyncpg_pool()).acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM registration
                WHERE event_id = $1 AND ($2::text IS NULL OR status = $2)
                ORDER BY created_at DESC, id DESC
                LIMIT $3
                """,
                event_id,
                str(status) if status else None,
                limit,
            )
        return [self._row_to_entity(row) for row in rows]
