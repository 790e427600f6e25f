"""Registration Application Interfaces"""

from src.service.registration.app.interface.i_capacity_counter import ICapacityCounter
from src.service.registration.app.interface.i_event_query_repo import IEventQueryRepo
from src.service.registration.app.interface.i_notification_dispatcher import (
    INotificationDispatcher,
)
from src.service.registration.app.interface.i_payment_gateway import IPaymentGateway
from src.service.registration.app.interface.i_registration_repo import IRegistrationRepo
from src.service.registration.app.interface.i_reservation_hold_repo import (
    HoldFilter,
    IReservationHoldRepo,
)
from src.service.registration.app.interface.i_resource_validator import IResourceValidator
from src.service.registration.app.interface.i_ticket_repo import ITicketRepo

__all__ = [
    'HoldFilter',
    'ICapacityCounter',
    'IEventQueryRepo',
    'INotificationDispatcher',
    'IPaymentGateway',
    'IRegistrationRepo',
    'IReservationHoldRepo',
    'IResourceValidator',
    'ITicketRepo',
]
