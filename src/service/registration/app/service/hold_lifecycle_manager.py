from datetime import datetime, timezone
from typing import Any, Optional

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface.i_reservation_hold_repo import (
    HoldFilter,
    IReservationHoldRepo,
)
from src.service.registration.domain.entity.reservation_hold_entity import ReservationHold
from src.service.registration.domain.enum import (
    ACTIVE_HOLD_STATES,
    HoldState,
    ItemType,
)
from src.service.registration.domain.value_object import HoldOwner, HoldScope


class HoldLifecycleManager:
    """
    Create / confirm / release holds for an owner.

    No store transactions: block holds are deduplicated by an existing-hold
    lookup before insert, and bulk transitions tolerate per-hold failures so a
    retry picks up whatever is still pending.
    """

    def __init__(
        self, *, hold_repo: IReservationHoldRepo, query_limit: int = settings.HOLD_QUERY_LIMIT
    ) -> None:
        self.hold_repo = hold_repo
        self.query_limit = query_limit

    async def list_active_holds(
        self,
        *,
        owner: HoldOwner,
        scope: Optional[HoldScope] = None,
        item_type: Optional[ItemType] = None,
    ) -> list[ReservationHold]:
        return await self.hold_repo.list_holds(
            hold_filter=HoldFilter(
                owner=owner, scope=scope, item_type=item_type, states=ACTIVE_HOLD_STATES
            ),
            limit=self.query_limit,
        )

    async def find_active_block_hold(
        self,
        *,
        owner: HoldOwner,
        scope: HoldScope,
        item_type: ItemType,
        line_id: Optional[str] = None,
    ) -> Optional[ReservationHold]:
        holds = await self.hold_repo.list_holds(
            hold_filter=HoldFilter(
                owner=owner,
                scope=scope,
                item_type=item_type,
                states=ACTIVE_HOLD_STATES,
                block_only=True,
            ),
            limit=self.query_limit,
        )
        if line_id is not None:
            holds = [hold for hold in holds if hold.event_line_id == line_id]
        return pick_block_hold(holds)

    @Logger.io
    async def create_block_hold(
        self,
        *,
        owner: HoldOwner,
        scope: HoldScope,
        item_type: ItemType,
        qty: int,
        line_id: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[ReservationHold]:
        if qty <= 0:
            return None

        existing = await self.find_active_block_hold(
            owner=owner, scope=scope, item_type=item_type, line_id=line_id
        )
        if existing is not None:
            return existing

        hold = ReservationHold.create_block(
            owner=owner,
            scope=scope,
            item_type=item_type,
            qty=qty,
            line_id=line_id,
            expires_at=expires_at,
            metadata=metadata,
        )
        return await self.hold_repo.create(hold=hold)

    @Logger.io
    async def confirm_holds_for_owner(self, *, owner: HoldOwner) -> int:
        holds = await self.hold_repo.list_holds(
            hold_filter=HoldFilter(owner=owner, states=(HoldState.HELD,)),
            limit=self.query_limit,
        )
        now = datetime.now(timezone.utc)
        updated = 0
        for hold in holds:
            try:
                await self.hold_repo.update(hold=hold.confirm(now=now))
                updated += 1
            except Exception as e:
                Logger.base.exception(f'⚠️ [HOLD] Failed to confirm hold {hold.id}: {e}')
        return updated

    @Logger.io
    async def release_holds_for_owner(self, *, owner: HoldOwner, reason: str) -> int:
        holds = await self.hold_repo.list_holds(
            hold_filter=HoldFilter(owner=owner, states=ACTIVE_HOLD_STATES),
            limit=self.query_limit,
        )
        now = datetime.now(timezone.utc)
        updated = 0
        for hold in holds:
            try:
                await self.hold_repo.update(hold=hold.release(reason=reason, now=now))
                updated += 1
            except Exception as e:
                Logger.base.exception(f'⚠️ [HOLD] Failed to release hold {hold.id}: {e}')
        return updated

    async def release_hold(self, *, hold: ReservationHold, reason: str) -> ReservationHold:
        return await self.hold_repo.update(hold=hold.release(reason=reason))


def pick_block_hold(holds: list[ReservationHold]) -> Optional[ReservationHold]:
    """Confirmed block holds win over held ones"""
    for state in (HoldState.CONFIRMED, HoldState.HELD):
        for hold in holds:
            if hold.is_block and hold.state is state:
                return hold
    return None
