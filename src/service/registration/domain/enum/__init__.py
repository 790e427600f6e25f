"""Registration Domain Enums"""

from src.service.registration.domain.enum.error_code import ErrorCode
from src.service.registration.domain.enum.hold_state import (
    ACTIVE_HOLD_STATES,
    HoldState,
    ReleaseReason,
)
from src.service.registration.domain.enum.item_type import CapacityKind, ItemType
from src.service.registration.domain.enum.notification_channel import NotificationChannel
from src.service.registration.domain.enum.registration_status import (
    EventStatus,
    PaymentStatus,
    RegistrationStatus,
)
from src.service.registration.domain.enum.ticket_type import TicketStatus, TicketType

__all__ = [
    'ACTIVE_HOLD_STATES',
    'CapacityKind',
    'ErrorCode',
    'EventStatus',
    'HoldState',
    'ItemType',
    'NotificationChannel',
    'PaymentStatus',
    'RegistrationStatus',
    'ReleaseReason',
    'TicketStatus',
    'TicketType',
]
