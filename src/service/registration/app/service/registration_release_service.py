"""
Capacity give-back shared by operator cancel, cancel+refund and TTL expiry.

Counters are released first, then holds, each step isolated so one failure
never keeps the others from running.
"""

from collections import defaultdict
from functools import partial

from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import ICapacityCounter
from src.service.registration.app.service.compensation import CompensationList
from src.service.registration.app.service.hold_lifecycle_manager import HoldLifecycleManager
from src.service.registration.domain.entity.registration_entity import Registration
from src.service.registration.domain.entity.reservation_hold_entity import ReservationHold
from src.service.registration.domain.enum import CapacityKind, ItemType
from src.service.registration.domain.value_object import HoldOwner, HoldScope


def class_line_release_quantities(holds: list[ReservationHold]) -> dict[str, int]:
    """
    Quantity to give back per event line.

    A line is represented either by per-entry holds (after assignment) or by
    its block hold (before). Prefer the per-entry sum and fall back to the
    block qty, so a converted line is never counted twice.
    """
    granular: dict[str, int] = defaultdict(int)
    block: dict[str, int] = defaultdict(int)
    for hold in holds:
        if hold.item_type is not ItemType.CLASS_ENTRY or not hold.is_active:
            continue
        line_id = hold.event_line_id
        if line_id is None:
            continue
        if hold.is_block:
            block[line_id] += hold.qty
        else:
            granular[line_id] += hold.qty

    return {
        line_id: granular[line_id] if granular.get(line_id) else block[line_id]
        for line_id in {*granular, *block}
    }


class RegistrationReleaseService:
    def __init__(
        self,
        *,
        capacity_counter: ICapacityCounter,
        hold_lifecycle_manager: HoldLifecycleManager,
    ) -> None:
        self.capacity_counter = capacity_counter
        self.hold_lifecycle_manager = hold_lifecycle_manager

    @Logger.io
    async def release_registration(self, *, registration: Registration, reason: str) -> int:
        """
        Give back every counter the checkout reserved, then release the holds

        Returns:
            Number of release steps that failed (logged, not raised)
        """
        owner = HoldOwner.registration(registration.id)
        scope = HoldScope.event(registration.event_id)
        event_id = registration.event_id

        # Read class holds before they are released, the line quantities come from them
        try:
            class_holds = await self.hold_lifecycle_manager.list_active_holds(
                owner=owner, scope=scope, item_type=ItemType.CLASS_ENTRY
            )
        except Exception as e:
            Logger.base.exception(
                f'⚠️ [RELEASE] Could not read class holds for {registration.id}, '
                f'class line counters left for reconciliation: {e}'
            )
            class_holds = []
        line_quantities = class_line_release_quantities(class_holds)

        steps = CompensationList(saga=f'release:{reason}:{registration.id}')
        # Run order is reverse of add order: holds go last
        steps.add(
            'release holds',
            partial(self.hold_lifecycle_manager.release_holds_for_owner, owner=owner, reason=reason),
        )
        for line_id, qty in sorted(line_quantities.items()):
            if qty > 0:
                steps.add(
                    f'release class line {line_id} x{qty}',
                    partial(
                        self.capacity_counter.release,
                        event_id=event_id,
                        kind=CapacityKind.CLASS_LINE,
                        qty=qty,
                        line_id=line_id,
                    ),
                )
        if registration.stall_qty > 0:
            steps.add(
                f'release stall x{registration.stall_qty}',
                partial(
                    self.capacity_counter.release,
                    event_id=event_id,
                    kind=CapacityKind.STALL,
                    qty=registration.stall_qty,
                ),
            )
        if registration.rv_qty > 0:
            steps.add(
                f'release rv x{registration.rv_qty}',
                partial(
                    self.capacity_counter.release,
                    event_id=event_id,
                    kind=CapacityKind.RV,
                    qty=registration.rv_qty,
                ),
            )
        steps.add(
            'release seat',
            partial(self.capacity_counter.release, event_id=event_id, kind=CapacityKind.SEAT, qty=1),
        )

        failures = await steps.run()
        if failures:
            Logger.base.warning(
                f'⚠️ [RELEASE] registration={registration.id} reason={reason} '
                f'finished with {failures} failed step(s)'
            )
        return failures
