from abc import ABC, abstractmethod
from typing import Optional

import attrs

from src.service.registration.domain.entity.reservation_hold_entity import ReservationHold
from src.service.registration.domain.enum import HoldState, ItemType
from src.service.registration.domain.value_object import HoldOwner, HoldScope


@attrs.frozen
class HoldFilter:
    """Conjunctive filter; `None` means "any"."""

    owner: Optional[HoldOwner] = None
    scope: Optional[HoldScope] = None
    item_type: Optional[ItemType] = None
    states: Optional[tuple[HoldState, ...]] = None
    resource_id: Optional[str] = None
    block_only: bool = False

    def matches(self, hold: ReservationHold) -> bool:
        if self.owner is not None and hold.owner != self.owner:
            return False
        if self.scope is not None and hold.scope != self.scope:
            return False
        if self.item_type is not None and hold.item_type is not self.item_type:
            return False
        if self.states is not None and hold.state not in self.states:
            return False
        if self.resource_id is not None and hold.resource_id != self.resource_id:
            return False
        if self.block_only and not hold.is_block:
            return False
        return True


class IReservationHoldRepo(ABC):
    @abstractmethod
    async def get_by_id(self, *, hold_id: str) -> Optional[ReservationHold]:
        pass

    @abstractmethod
    async def list_holds(
        self, *, hold_filter: HoldFilter, limit: int = 200
    ) -> list[ReservationHold]:
        """
        List holds matching the filter, newest first

        Args:
            hold_filter: Conjunctive filter over owner/scope/item type/state/resource
            limit: Page size bound

        Returns:
            Matching holds (at most `limit`)
        """
        pass

    @abstractmethod
    async def create(self, *, hold: ReservationHold) -> ReservationHold:
        pass

    @abstractmethod
    async def update(self, *, hold: ReservationHold) -> ReservationHold:
        """Persist state transition fields (state, confirmed/released timestamps, reason)"""
        pass
