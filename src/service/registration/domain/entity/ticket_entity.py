import hashlib
from datetime import datetime
from typing import Optional

import attrs

from src.service.registration.domain.enum import TicketStatus, TicketType


def ticket_id_for(*, registration_id: str, ticket_type: TicketType, idempotency_key: str) -> str:
    """Same registration, type and key always name the same ticket"""
    digest = hashlib.sha256(
        f'{registration_id}|{ticket_type}|{idempotency_key}'.encode()
    ).hexdigest()
    return f'ticket_{digest[:12]}'


@attrs.define
class Ticket:
    id: str
    event_id: str
    registration_id: str
    ticket_type: TicketType = attrs.field(converter=TicketType)
    status: TicketStatus = attrs.field(default=TicketStatus.VALID, converter=TicketStatus)
    qr_text: str = ''
    issued_at: Optional[datetime] = None
    issued_by: Optional[str] = None
    used_at: Optional[datetime] = None

    @classmethod
    def issue(
        cls,
        *,
        event_id: str,
        registration_id: str,
        ticket_type: TicketType,
        idempotency_key: str,
        issued_by: Optional[str],
        now: datetime,
    ) -> 'Ticket':
        ticket_id = ticket_id_for(
            registration_id=registration_id,
            ticket_type=ticket_type,
            idempotency_key=idempotency_key,
        )
        return cls(
            id=ticket_id,
            event_id=event_id,
            registration_id=registration_id,
            ticket_type=ticket_type,
            qr_text=f'ticket|{event_id}|{registration_id}|{ticket_id}',
            issued_at=now,
            issued_by=issued_by,
        )
