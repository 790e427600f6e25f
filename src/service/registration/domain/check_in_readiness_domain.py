"""
Check-In Readiness Domain

Pure evaluation of whether a registration may be checked in. No I/O: callers
hand in the registration fields and that registration's holds.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Optional

from src.service.registration.domain.entity.registration_entity import (
    Registration,
    RegistrationLine,
)
from src.service.registration.domain.entity.reservation_hold_entity import ReservationHold
from src.service.registration.domain.enum import ItemType, PaymentStatus, RegistrationStatus
from src.service.registration.domain.value_object import (
    CheckInAction,
    CheckInBlocker,
    CheckInStatus,
)


BLOCKER_REASONS: dict[str, str] = {
    'payment_unpaid': 'Payment not confirmed',
    'payment_failed': 'Payment failed',
    'cancelled': 'Registration cancelled',
    'stalls_unassigned': 'Stall assignment required',
    'rv_unassigned': 'RV site assignment required',
    'classes_unassigned': 'Class assignment required',
}


def _count_assigned(holds: Iterable[ReservationHold], item_type: ItemType) -> int:
    return sum(
        1
        for hold in holds
        if hold.item_type is item_type and hold.is_active and not hold.is_block
    )


def _blocker(code: str, message: str, action: Optional[CheckInAction] = None) -> CheckInBlocker:
    return CheckInBlocker(code=code, message=message, reason=BLOCKER_REASONS[code], action=action)


def compute_check_in_status(
    *,
    target: str,
    status: RegistrationStatus,
    payment_status: Optional[PaymentStatus],
    stall_qty: int,
    rv_qty: int,
    lines: Sequence[RegistrationLine],
    holds: Sequence[ReservationHold],
    previous: Optional[CheckInStatus] = None,
    now: Optional[datetime] = None,
) -> CheckInStatus:
    evaluated_at = now or datetime.now(timezone.utc)
    version = previous.version if previous is not None else 0

    if status is RegistrationStatus.CANCELLED:
        return CheckInStatus(
            ready=False,
            blockers=(_blocker('cancelled', 'Registration cancelled'),),
            last_evaluated_at=evaluated_at,
            version=version,
        )

    blockers: list[CheckInBlocker] = []

    if payment_status is not PaymentStatus.PAID:
        if payment_status is PaymentStatus.FAILED:
            blockers.append(
                _blocker(
                    'payment_failed',
                    'Payment failed',
                    CheckInAction(type='view_payment', label='Retry Payment', target=target),
                )
            )
        else:
            blockers.append(
                _blocker(
                    'payment_unpaid',
                    'Payment not confirmed',
                    CheckInAction(type='view_payment', label='View Payment', target=target),
                )
            )

    if stall_qty > 0:
        assigned = _count_assigned(holds, ItemType.STALL)
        if assigned < stall_qty:
            blockers.append(
                _blocker(
                    'stalls_unassigned',
                    f'Stalls unassigned ({assigned}/{stall_qty})',
                    CheckInAction(type='assign_stalls', label='Assign Stalls', target=target),
                )
            )

    if rv_qty > 0:
        assigned = _count_assigned(holds, ItemType.RV)
        if assigned < rv_qty:
            blockers.append(
                _blocker(
                    'rv_unassigned',
                    f'RV sites unassigned ({assigned}/{rv_qty})',
                    CheckInAction(type='assign_rv', label='Assign RV', target=target),
                )
            )

    required_classes = sum(line.qty for line in lines)
    if required_classes > 0:
        assigned = _count_assigned(holds, ItemType.CLASS_ENTRY)
        if assigned < required_classes:
            blockers.append(
                _blocker(
                    'classes_unassigned',
                    f'Class entries unassigned ({assigned}/{required_classes})',
                    CheckInAction(type='assign_classes', label='Assign Classes', target=target),
                )
            )

    return CheckInStatus(
        ready=not blockers,
        blockers=tuple(blockers),
        last_evaluated_at=evaluated_at,
        version=version,
    )


def evaluate_registration(
    registration: Registration,
    holds: Sequence[ReservationHold],
    *,
    status: Optional[RegistrationStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    now: Optional[datetime] = None,
) -> CheckInStatus:
    """Evaluate a registration, optionally as if it were already in another status."""
    return compute_check_in_status(
        target=registration.id,
        status=status or registration.status,
        payment_status=payment_status or registration.payment_status,
        stall_qty=registration.stall_qty,
        rv_qty=registration.rv_qty,
        lines=registration.lines,
        holds=holds,
        previous=registration.check_in_status,
        now=now,
    )
