"""
Notification Outbox

Messages are written to `notification_message`; a separate sender drains
queued rows. With NOTIFY_SIMULATE on, rows are stored as already sent.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import asyncpg
from uuid_utils import uuid7

from src.platform.database.asyncpg_setting import get_asyncpg_pool
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.dto.notification_dto import (
    MESSAGE_STATUS_QUEUED,
    MESSAGE_STATUS_SENT,
    NotificationMessage,
)
from src.service.registration.app.interface import INotificationDispatcher


CHANNEL_EMAIL = 'email'
CHANNEL_SMS = 'sms'


class NotificationOutboxDispatcherImpl(INotificationDispatcher):
    def __init__(self, *, simulate: bool = False) -> None:
        self.simulate = simulate

    @property
    def _initial_status(self) -> str:
        return MESSAGE_STATUS_SENT if self.simulate else MESSAGE_STATUS_QUEUED

    @staticmethod
    def _row_to_message(row: asyncpg.Record) -> NotificationMessage:
        return NotificationMessage(
            id=row['id'],
            channel=row['channel'],
            status=row['status'],
            sent_at=row['sent_at'],
            error_message=row['error_message'],
        )

    async def _enqueue(
        self, *, channel: str, to: str, template_key: str, template_vars: dict[str, Any]
    ) -> str:
        message_id = str(uuid7())
        now = datetime.now(timezone.utc)
        status = self._initial_status
        async with (await get_asyncpg_pool()).acquire() as conn:
            await conn.execute(
                """
                INSERT INTO notification_message (
                    id, channel, recipient, template_key, template_vars, status, created_at, sent_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                """,
                message_id,
                channel,
                to,
                template_key,
                template_vars,
                status,
                now,
                now if self.simulate else None,
            )
        Logger.base.info(f'✉️ [NOTIFY] {channel} {template_key} → {status} ({message_id})')
        return message_id

    @Logger.io
    async def enqueue_email(
        self, *, to: str, template_key: str, template_vars: dict[str, Any]
    ) -> str:
        return await self._enqueue(
            channel=CHANNEL_EMAIL, to=to, template_key=template_key, template_vars=template_vars
        )

    @Logger.io
    async def enqueue_sms(self, *, to: str, template_key: str, template_vars: dict[str, Any]) -> str:
        return await self._enqueue(
            channel=CHANNEL_SMS, to=to, template_key=template_key, template_vars=template_vars
        )

    @Logger.io
    async def get_message(self, *, message_id: str) -> Optional[NotificationMessage]:
        async with (await get_asyncpg_pool()).acquire() as conn:
            row = await conn.fetchrow(
                'SELECT * FROM notification_message WHERE id = $1', message_id
            )
        return self._row_to_message(row) if row else None

    @Logger.io
    async def retry_message(self, *, message_id: str) -> NotificationMessage:
        now = datetime.now(timezone.utc)
        status = self._initial_status
        async with (await get_asyncpg_pool()).acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE notification_message
                SET status = $2, sent_at = $3, error_message = NULL, attempts = attempts + 1
                WHERE id = $1
                RETURNING *
                """,
                message_id,
                status,
                now if self.simulate else None,
            )
        if row is None:
            raise ValueError(f'Notification message {message_id} does not exist')
        Logger.base.info(f'🔁 [NOTIFY] retry {row["channel"]} {message_id} → {status}')
        return self._row_to_message(row)
