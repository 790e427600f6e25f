"""
Unit tests for check-in readiness evaluation

Blocker ordering: cancelled short-circuits, then payment, stalls, RV, classes.
"""

from datetime import datetime, timezone

import pytest

from src.service.registration.domain.check_in_readiness_domain import compute_check_in_status
from src.service.registration.domain.entity.registration_entity import RegistrationLine
from src.service.registration.domain.entity.reservation_hold_entity import ReservationHold
from src.service.registration.domain.enum import (
    ItemType,
    PaymentStatus,
    RegistrationStatus,
    ReleaseReason,
)
from src.service.registration.domain.value_object import CheckInStatus, HoldOwner, HoldScope


NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def _granular(item_type: ItemType, resource_id: str) -> ReservationHold:
    block = ReservationHold.create_block(
        owner=HoldOwner.registration('reg_1'),
        scope=HoldScope.event('evt_1'),
        item_type=item_type,
        qty=1,
    )
    return block.split_for_resource(resource_id=resource_id)


def _evaluate(**overrides) -> CheckInStatus:
    params = {
        'target': 'reg_1',
        'status': RegistrationStatus.CONFIRMED,
        'payment_status': PaymentStatus.PAID,
        'stall_qty': 0,
        'rv_qty': 0,
        'lines': [],
        'holds': [],
        'now': NOW,
    }
    params.update(overrides)
    return compute_check_in_status(**params)


@pytest.mark.unit
class TestComputeCheckInStatus:
    def test_paid_registration_without_add_ons_is_ready(self) -> None:
        status = _evaluate()

        assert status.ready is True
        assert status.blockers == ()
        assert status.last_evaluated_at == NOW

    def test_cancelled_is_the_only_blocker(self) -> None:
        status = _evaluate(
            status=RegistrationStatus.CANCELLED,
            payment_status=PaymentStatus.FAILED,
            stall_qty=2,
        )

        assert status.ready is False
        assert status.blocker_codes == ['cancelled']
        assert status.blockers[0].action is None

    def test_unpaid_and_failed_payment_blockers(self) -> None:
        unpaid = _evaluate(status=RegistrationStatus.SUBMITTED, payment_status=PaymentStatus.PENDING)
        failed = _evaluate(status=RegistrationStatus.SUBMITTED, payment_status=PaymentStatus.FAILED)

        assert unpaid.blocker_codes == ['payment_unpaid']
        assert unpaid.blockers[0].action.label == 'View Payment'
        assert failed.blocker_codes == ['payment_failed']
        assert failed.blockers[0].action.label == 'Retry Payment'
        assert failed.blockers[0].action.target == 'reg_1'

    def test_blockers_follow_fixed_order_with_counts(self) -> None:
        status = _evaluate(
            payment_status=None,
            stall_qty=2,
            rv_qty=1,
            lines=[RegistrationLine(class_id='cls_a', qty=2)],
            holds=[_granular(ItemType.STALL, 'stall_1')],
        )

        assert status.blocker_codes == [
            'payment_unpaid',
            'stalls_unassigned',
            'rv_unassigned',
            'classes_unassigned',
        ]
        assert status.blockers[1].message == 'Stalls unassigned (1/2)'
        assert status.blockers[2].message == 'RV sites unassigned (0/1)'
        assert status.blockers[3].message == 'Class entries unassigned (0/2)'
        assert status.blockers[3].reason == 'Class assignment required'

    def test_block_holds_do_not_count_as_assigned(self) -> None:
        block = ReservationHold.create_block(
            owner=HoldOwner.registration('reg_1'),
            scope=HoldScope.event('evt_1'),
            item_type=ItemType.STALL,
            qty=1,
        )

        status = _evaluate(stall_qty=1, holds=[block])

        assert status.blocker_codes == ['stalls_unassigned']

    def test_released_granular_holds_do_not_count(self) -> None:
        released = _granular(ItemType.RV, 'rv_1').release(reason=ReleaseReason.OPERATOR_CANCEL)

        status = _evaluate(rv_qty=1, holds=[released])

        assert status.blocker_codes == ['rv_unassigned']

    def test_fully_assigned_registration_is_ready(self) -> None:
        status = _evaluate(
            stall_qty=1,
            rv_qty=1,
            lines=[RegistrationLine(class_id='cls_a', qty=1)],
            holds=[
                _granular(ItemType.STALL, 'stall_1'),
                _granular(ItemType.RV, 'rv_1'),
                _granular(ItemType.CLASS_ENTRY, 'line_a'),
            ],
        )

        assert status.ready is True

    def test_snapshot_version_is_carried_forward(self) -> None:
        previous = CheckInStatus(ready=False, blockers=(), last_evaluated_at=NOW, version=7)

        status = _evaluate(previous=previous)

        assert status.version == 7

    def test_snapshot_survives_dict_round_trip(self) -> None:
        status = _evaluate(payment_status=PaymentStatus.FAILED, stall_qty=1)

        assert CheckInStatus.from_dict(status.to_dict()) == status
