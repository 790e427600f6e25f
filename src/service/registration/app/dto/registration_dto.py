"""
Registration DTOs

Results handed back by registration use cases to the HTTP layer.
"""

from datetime import datetime
from typing import Optional

import attrs

from src.service.registration.domain.entity.reservation_hold_entity import ReservationHold


@attrs.frozen
class CheckoutResult:
    registration_id: str
    payment_intent_id: str
    client_secret: str
    hold_expires_at: Optional[datetime]
    replayed: bool = False


@attrs.frozen
class AssignmentResult:
    """Per-resource holds (created or reused) followed by the released block holds"""

    resource_holds: tuple[ReservationHold, ...]
    released_block_holds: tuple[ReservationHold, ...]

    @property
    def holds(self) -> list[ReservationHold]:
        return [*self.resource_holds, *self.released_block_holds]


@attrs.frozen
class ExpireSweepResult:
    scanned_count: int
    expired_count: int
    expired_registration_ids: tuple[str, ...] = ()
