"""Registration Domain Value Objects"""

from src.service.registration.domain.value_object.check_in_status import (
    CheckInAction,
    CheckInBlocker,
    CheckInStatus,
)
from src.service.registration.domain.value_object.fee_line import FeeLine
from src.service.registration.domain.value_object.hold_party import HoldOwner, HoldScope

__all__ = ['CheckInAction', 'CheckInBlocker', 'CheckInStatus', 'FeeLine', 'HoldOwner', 'HoldScope']
