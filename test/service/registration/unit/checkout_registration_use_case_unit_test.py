"""
Unit tests for CheckoutRegistrationUseCase

Test Focus:
1. Happy path: counters, block holds, fee total, payment intent
2. Replay: live intent, expired hold, idempotency key
3. Guards: state, event status, fee configuration
4. Compensation: any failure after the first reservation gives everything back
5. Delta reconciliation against holds left by an earlier attempt
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.platform.exception.exceptions import (
    CapacityExhaustedError,
    ConsistencyError,
    NotFoundError,
    PaymentGatewayError,
    StateConflictError,
    ValidationError,
)
from src.service.registration.domain.enum import (
    CapacityKind,
    ErrorCode,
    HoldState,
    ItemType,
    PaymentStatus,
    RegistrationStatus,
)
from src.service.registration.domain.value_object import HoldOwner, HoldScope


ALL_CLASSES = {'cls_halter': 1, 'cls_trail': 1, 'cls_barrels': 1, 'cls_pleasure': 1}


def _holds_by_type(engine, registration_id: str) -> dict[ItemType, list]:
    grouped: dict[ItemType, list] = {}
    for hold in engine.active_holds(registration_id):
        grouped.setdefault(hold.item_type, []).append(hold)
    return grouped


@pytest.mark.unit
class TestCheckoutHappyPath:
    @pytest.mark.asyncio
    async def test_checkout_reserves_everything_and_submits(self, engine) -> None:
        draft = await engine.make_draft(
            classes={'cls_halter': 2, 'cls_trail': 1}, stall_qty=2, rv_qty=1
        )
        before = datetime.now(timezone.utc)

        result = await engine.checkout.checkout(registration_id=draft.id)

        assert result.replayed is False
        assert result.payment_intent_id.startswith('pi_sim_')
        assert result.client_secret
        assert result.hold_expires_at >= before + timedelta(seconds=900)

        registration = await engine.reload(draft.id)
        assert registration.status is RegistrationStatus.SUBMITTED
        assert registration.payment_status is PaymentStatus.PENDING
        assert registration.total_amount == 2 * 3500 + 2500 + 5000 + 2 * 7500
        assert [fee.code for fee in registration.fees] == [
            'class:cls_halter',
            'class:cls_trail',
            'rv',
            'stall',
        ]
        assert registration.checkout_idempotency_key == draft.id

        holds = _holds_by_type(engine, draft.id)
        assert [hold.qty for hold in holds[ItemType.SEAT]] == [1]
        assert [hold.qty for hold in holds[ItemType.RV]] == [1]
        assert [hold.qty for hold in holds[ItemType.STALL]] == [2]
        assert {hold.event_line_id: hold.qty for hold in holds[ItemType.CLASS_ENTRY]} == {
            engine.line_id_for('cls_halter'): 2,
            engine.line_id_for('cls_trail'): 1,
        }
        assert all(hold.expires_at == registration.hold_expires_at for hold in holds[ItemType.SEAT])

        counter = engine.counter
        assert counter.reserved_for(engine.event_id, CapacityKind.SEAT) == 1
        assert counter.reserved_for(engine.event_id, CapacityKind.RV) == 1
        assert counter.reserved_for(engine.event_id, CapacityKind.STALL) == 2
        assert (
            counter.reserved_for(
                engine.event_id, CapacityKind.CLASS_LINE, engine.line_id_for('cls_halter')
            )
            == 2
        )

    @pytest.mark.asyncio
    async def test_zero_add_ons_create_no_rv_or_stall_holds(self, engine) -> None:
        registration = await engine.make_submitted(classes={'cls_trail': 1})

        holds = _holds_by_type(engine, registration.id)

        assert set(holds) == {ItemType.SEAT, ItemType.CLASS_ENTRY}
        assert all(
            kind not in (CapacityKind.RV, CapacityKind.STALL)
            for kind, _, _ in engine.counter.reserve_calls
        )

    @pytest.mark.asyncio
    async def test_client_idempotency_key_is_passed_through(self, engine) -> None:
        draft = await engine.make_draft(classes={'cls_trail': 1})

        await engine.checkout.checkout(registration_id=draft.id, idempotency_key='client-key-1')

        registration = await engine.reload(draft.id)
        assert registration.checkout_idempotency_key == 'client-key-1'


@pytest.mark.unit
class TestCheckoutReplay:
    @pytest.mark.asyncio
    async def test_second_checkout_replays_live_intent(self, engine) -> None:
        draft = await engine.make_draft(classes={'cls_halter': 1}, stall_qty=1)
        first = await engine.checkout.checkout(registration_id=draft.id)
        reserve_calls = len(engine.counter.reserve_calls)

        second = await engine.checkout.checkout(registration_id=draft.id)

        assert second.replayed is True
        assert second.payment_intent_id == first.payment_intent_id
        assert second.client_secret == first.client_secret
        assert second.hold_expires_at == first.hold_expires_at
        assert len(engine.counter.reserve_calls) == reserve_calls

    @pytest.mark.asyncio
    async def test_expired_hold_is_not_replayed(self, engine) -> None:
        registration = await engine.make_submitted(classes={'cls_halter': 1})
        await engine.force_hold_expiry(registration.id)

        with pytest.raises(StateConflictError) as exc_info:
            await engine.checkout.checkout(registration_id=registration.id)

        assert exc_info.value.code == ErrorCode.HOLD_EXPIRED

    @pytest.mark.asyncio
    async def test_confirmed_registration_replays_only_with_matching_key(self, engine) -> None:
        registration = await engine.make_confirmed(classes={'cls_halter': 1})

        replay = await engine.checkout.checkout(
            registration_id=registration.id, idempotency_key=registration.checkout_idempotency_key
        )
        assert replay.replayed is True
        assert replay.payment_intent_id == registration.payment_intent_id

        with pytest.raises(StateConflictError) as exc_info:
            await engine.checkout.checkout(registration_id=registration.id, idempotency_key='other')
        assert exc_info.value.code == ErrorCode.INVALID_STATE

    @pytest.mark.asyncio
    async def test_expired_registration_is_invalid_state(self, engine) -> None:
        registration = await engine.make_submitted(classes={'cls_halter': 1})
        await engine.force_hold_expiry(registration.id)
        await engine.expire.sweep()

        with pytest.raises(StateConflictError) as exc_info:
            await engine.checkout.checkout(registration_id=registration.id)

        assert exc_info.value.code == ErrorCode.INVALID_STATE


@pytest.mark.unit
class TestCheckoutGuards:
    @pytest.mark.asyncio
    async def test_unknown_registration(self, engine) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await engine.checkout.checkout(registration_id='reg_missing')
        assert exc_info.value.code == ErrorCode.REGISTRATION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_event_not_open(self, engine) -> None:
        draft = await engine.make_draft(event_id=engine.other_event_id)

        with pytest.raises(StateConflictError) as exc_info:
            await engine.checkout.checkout(registration_id=draft.id)

        assert exc_info.value.code == ErrorCode.EVENT_NOT_OPEN
        assert engine.counter.reserve_calls == []

    @pytest.mark.asyncio
    async def test_event_removed_after_draft(self, engine) -> None:
        draft = await engine.make_draft(classes={'cls_halter': 1})
        del engine.event_repo.events[engine.event_id]

        with pytest.raises(ValidationError) as exc_info:
            await engine.checkout.checkout(registration_id=draft.id)

        assert exc_info.value.code == ErrorCode.EVENT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_rv_not_enabled(self, engine) -> None:
        engine.event_repo.events[engine.event_id].rv_enabled = False
        draft = await engine.make_draft(classes={'cls_halter': 1}, rv_qty=1)

        with pytest.raises(ValidationError) as exc_info:
            await engine.checkout.checkout(registration_id=draft.id)

        assert exc_info.value.code == ErrorCode.RV_NOT_ENABLED
        assert engine.counter.reserve_calls == []

    @pytest.mark.asyncio
    async def test_class_not_offered(self, engine) -> None:
        draft = await engine.make_draft(classes={'cls_reining': 1})

        with pytest.raises(ValidationError) as exc_info:
            await engine.checkout.checkout(registration_id=draft.id)

        assert exc_info.value.code == ErrorCode.CLASS_NOT_OFFERED


@pytest.mark.unit
class TestCheckoutCompensation:
    @pytest.mark.asyncio
    async def test_seat_full(self, engine) -> None:
        engine.counter.set_cap(engine.event_id, CapacityKind.SEAT, 0)
        draft = await engine.make_draft(classes={'cls_halter': 1})

        with pytest.raises(CapacityExhaustedError) as exc_info:
            await engine.checkout.checkout(registration_id=draft.id)

        assert exc_info.value.code == ErrorCode.CAPACITY_FULL
        assert engine.hold_repo.rows == {}
        assert engine.counter.total_reserved() == 0

    @pytest.mark.asyncio
    async def test_stall_full_gives_back_seat_and_rv(self, engine) -> None:
        engine.counter.set_cap(engine.event_id, CapacityKind.STALL, 1)
        draft = await engine.make_draft(stall_qty=2, rv_qty=1)

        with pytest.raises(CapacityExhaustedError) as exc_info:
            await engine.checkout.checkout(registration_id=draft.id)

        assert exc_info.value.code == ErrorCode.STALL_CAPACITY_FULL
        assert engine.counter.total_reserved() == 0
        assert (CapacityKind.RV, None, 1) in engine.counter.release_calls
        assert (CapacityKind.SEAT, None, 1) in engine.counter.release_calls

    @pytest.mark.asyncio
    async def test_third_class_line_full_releases_earlier_lines(self, engine) -> None:
        barrels = engine.line_id_for('cls_barrels')
        engine.counter.set_cap(engine.event_id, CapacityKind.CLASS_LINE, 0, line_id=barrels)
        draft = await engine.make_draft(classes=ALL_CLASSES, stall_qty=1)

        with pytest.raises(CapacityExhaustedError) as exc_info:
            await engine.checkout.checkout(registration_id=draft.id)

        assert exc_info.value.code == ErrorCode.CLASS_CAPACITY_FULL
        assert exc_info.value.details == {'line_id': barrels}
        assert engine.counter.total_reserved() == 0
        assert engine.active_holds(draft.id) == []
        released = engine.hold_repo.owned_by(draft.id)
        assert {hold.event_line_id for hold in released} == {
            engine.line_id_for('cls_halter'),
            engine.line_id_for('cls_trail'),
        }
        assert all(hold.release_reason == 'checkout_failed' for hold in released)
        # The fourth line was never touched
        pleasure = engine.line_id_for('cls_pleasure')
        assert all(line_id != pleasure for _, line_id, _ in engine.counter.reserve_calls)

        registration = await engine.reload(draft.id)
        assert registration.status is RegistrationStatus.DRAFT

    @pytest.mark.asyncio
    async def test_payment_failure_releases_counters_and_holds(self, engine, monkeypatch) -> None:
        async def failing_create_intent(**kwargs):
            raise PaymentGatewayError('card_declined')

        monkeypatch.setattr(engine.gateway, 'create_intent', failing_create_intent)
        draft = await engine.make_draft(classes={'cls_halter': 2}, stall_qty=1, rv_qty=1)

        with pytest.raises(PaymentGatewayError, match='card_declined'):
            await engine.checkout.checkout(registration_id=draft.id)

        assert engine.counter.total_reserved() == 0
        assert engine.active_holds(draft.id) == []
        assert len(engine.hold_repo.owned_by(draft.id)) == 4
        registration = await engine.reload(draft.id)
        assert registration.status is RegistrationStatus.DRAFT
        assert registration.payment_intent_id is None

    @pytest.mark.asyncio
    async def test_missing_class_block_after_reservation(self, engine, monkeypatch) -> None:
        create_block_hold = engine.hold_lifecycle_manager.create_block_hold

        async def skip_class_blocks(**kwargs):
            if kwargs['item_type'] is ItemType.CLASS_ENTRY:
                return None
            return await create_block_hold(**kwargs)

        monkeypatch.setattr(engine.hold_lifecycle_manager, 'create_block_hold', skip_class_blocks)
        draft = await engine.make_draft(classes={'cls_halter': 1})

        with pytest.raises(ConsistencyError) as exc_info:
            await engine.checkout.checkout(registration_id=draft.id)

        assert exc_info.value.code == ErrorCode.BLOCK_HOLD_MISSING
        assert exc_info.value.details['missing_event_line_ids'] == [
            engine.line_id_for('cls_halter')
        ]
        assert engine.counter.total_reserved() == 0


@pytest.mark.unit
class TestCheckoutDeltaReconciliation:
    @pytest.mark.asyncio
    async def test_block_left_by_earlier_attempt_is_reused(self, engine) -> None:
        draft = await engine.make_draft(classes={'cls_halter': 2})
        halter = engine.line_id_for('cls_halter')
        leftover = await engine.hold_lifecycle_manager.create_block_hold(
            owner=HoldOwner.registration(draft.id),
            scope=HoldScope.event(engine.event_id),
            item_type=ItemType.CLASS_ENTRY,
            qty=2,
            line_id=halter,
        )
        await engine.counter.reserve(
            event_id=engine.event_id, kind=CapacityKind.CLASS_LINE, qty=2, line_id=halter
        )
        engine.counter.reserve_calls.clear()

        await engine.checkout.checkout(registration_id=draft.id)

        class_holds = _holds_by_type(engine, draft.id)[ItemType.CLASS_ENTRY]
        assert [hold.id for hold in class_holds] == [leftover.id]
        assert all(kind is not CapacityKind.CLASS_LINE for kind, _, _ in engine.counter.reserve_calls)
        assert engine.counter.reserved_for(engine.event_id, CapacityKind.CLASS_LINE, halter) == 2

    @pytest.mark.asyncio
    async def test_reused_hold_survives_a_failed_retry(self, engine, monkeypatch) -> None:
        draft = await engine.make_draft(classes={'cls_halter': 1})
        halter = engine.line_id_for('cls_halter')
        leftover = await engine.hold_lifecycle_manager.create_block_hold(
            owner=HoldOwner.registration(draft.id),
            scope=HoldScope.event(engine.event_id),
            item_type=ItemType.CLASS_ENTRY,
            qty=1,
            line_id=halter,
        )

        async def failing_create_intent(**kwargs):
            raise PaymentGatewayError('gateway down')

        monkeypatch.setattr(engine.gateway, 'create_intent', failing_create_intent)

        with pytest.raises(PaymentGatewayError):
            await engine.checkout.checkout(registration_id=draft.id)

        assert engine.hold_repo.rows[leftover.id].state is HoldState.HELD

    @pytest.mark.asyncio
    async def test_assigned_line_gets_no_new_block(self, engine) -> None:
        draft = await engine.make_draft(classes={'cls_halter': 2, 'cls_trail': 1})
        halter = engine.line_id_for('cls_halter')
        block = await engine.hold_lifecycle_manager.create_block_hold(
            owner=HoldOwner.registration(draft.id),
            scope=HoldScope.event(engine.event_id),
            item_type=ItemType.CLASS_ENTRY,
            qty=2,
            line_id=halter,
        )
        for _ in range(2):
            await engine.hold_repo.create(hold=block.split_for_resource(resource_id=halter))
        await engine.hold_lifecycle_manager.release_hold(hold=block, reason='assigned')

        await engine.checkout.checkout(registration_id=draft.id)

        class_holds = _holds_by_type(engine, draft.id)[ItemType.CLASS_ENTRY]
        halter_holds = [hold for hold in class_holds if hold.event_line_id == halter]
        assert len(halter_holds) == 2
        assert all(not hold.is_block for hold in halter_holds)
        assert [kind_line for kind_line in engine.counter.reserve_calls if kind_line[1] == halter] == []
