import pytest

from src.platform.exception.exceptions import (
    NotFoundError,
    PaymentGatewayError,
    StateConflictError,
)
from src.service.registration.domain.enum import (
    CapacityKind,
    ErrorCode,
    HoldState,
    PaymentStatus,
    RegistrationStatus,
)


@pytest.mark.unit
class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_unpaid_submission_releases_capacity(self, engine) -> None:
        registration = await engine.make_submitted(classes={'cls_halter': 1}, stall_qty=1)

        cancelled = await engine.cancel.cancel(registration_id=registration.id)

        assert cancelled.status is RegistrationStatus.CANCELLED
        assert cancelled.payment_status is PaymentStatus.FAILED
        assert engine.counter.total_reserved() == 0
        assert engine.active_holds(registration.id) == []
        assert {hold.release_reason for hold in engine.hold_repo.owned_by(registration.id)} == {
            'operator_cancel'
        }

    @pytest.mark.asyncio
    async def test_cancel_paid_registration_keeps_payment_paid(self, engine) -> None:
        registration = await engine.make_confirmed(rv_qty=1)

        cancelled = await engine.cancel.cancel(registration_id=registration.id)

        assert cancelled.status is RegistrationStatus.CANCELLED
        assert cancelled.payment_status is PaymentStatus.PAID
        assert engine.counter.reserved_for(engine.event_id, CapacityKind.RV) == 0

    @pytest.mark.asyncio
    async def test_second_cancel_is_a_no_op(self, engine) -> None:
        registration = await engine.make_submitted(stall_qty=1)
        first = await engine.cancel.cancel(registration_id=registration.id)
        release_calls = len(engine.counter.release_calls)

        second = await engine.cancel.cancel(registration_id=registration.id)

        assert second.cancelled_at == first.cancelled_at
        assert len(engine.counter.release_calls) == release_calls

    @pytest.mark.asyncio
    async def test_draft_cannot_be_cancelled(self, engine) -> None:
        draft = await engine.make_draft()

        with pytest.raises(StateConflictError) as exc_info:
            await engine.cancel.cancel(registration_id=draft.id)

        assert exc_info.value.code == ErrorCode.INVALID_STATE

    @pytest.mark.asyncio
    async def test_release_failure_does_not_fail_the_cancel(self, engine) -> None:
        registration = await engine.make_submitted(stall_qty=1, rv_qty=1)
        engine.counter.fail_release.add((CapacityKind.RV, None))

        cancelled = await engine.cancel.cancel(registration_id=registration.id)

        assert cancelled.status is RegistrationStatus.CANCELLED
        assert engine.counter.reserved_for(engine.event_id, CapacityKind.RV) == 1
        assert engine.counter.reserved_for(engine.event_id, CapacityKind.STALL) == 0
        assert engine.active_holds(registration.id) == []

    @pytest.mark.asyncio
    async def test_unknown_registration(self, engine) -> None:
        with pytest.raises(NotFoundError):
            await engine.cancel.cancel(registration_id='reg_missing')


@pytest.mark.unit
class TestCancelAndRefund:
    @pytest.mark.asyncio
    async def test_refund_paid_registration(self, engine) -> None:
        registration = await engine.make_confirmed(classes={'cls_trail': 1}, stall_qty=1)
        await engine.assign.assign_stalls(registration_id=registration.id, stall_ids=['stall_2'])

        refunded = await engine.cancel.cancel_and_refund(registration_id=registration.id)

        assert refunded.status is RegistrationStatus.CANCELLED
        assert refunded.payment_status is PaymentStatus.REFUNDED
        assert refunded.refund_id.startswith('re_sim_')
        assert refunded.refunded_at is not None
        assert engine.counter.total_reserved() == 0
        holds = engine.hold_repo.owned_by(registration.id)
        assert {hold.state for hold in holds} == {HoldState.RELEASED}

    @pytest.mark.asyncio
    async def test_refund_twice_returns_the_refunded_record(self, engine) -> None:
        registration = await engine.make_confirmed(classes={'cls_trail': 1})
        first = await engine.cancel.cancel_and_refund(registration_id=registration.id)

        second = await engine.cancel.cancel_and_refund(registration_id=registration.id)

        assert second.refund_id == first.refund_id

    @pytest.mark.asyncio
    async def test_unpaid_registration_cannot_be_refunded(self, engine) -> None:
        registration = await engine.make_submitted(classes={'cls_trail': 1})

        with pytest.raises(StateConflictError) as exc_info:
            await engine.cancel.cancel_and_refund(registration_id=registration.id)

        assert exc_info.value.code == ErrorCode.INVALID_STATE

    @pytest.mark.asyncio
    async def test_gateway_failure_leaves_registration_untouched(self, engine, monkeypatch) -> None:
        registration = await engine.make_confirmed(stall_qty=1)

        async def failing_refund(**kwargs):
            raise PaymentGatewayError('charge_already_refunded')

        monkeypatch.setattr(engine.gateway, 'refund', failing_refund)

        with pytest.raises(PaymentGatewayError, match='charge_already_refunded'):
            await engine.cancel.cancel_and_refund(registration_id=registration.id)

        current = await engine.reload(registration.id)
        assert current.status is RegistrationStatus.CONFIRMED
        assert current.payment_status is PaymentStatus.PAID
        assert engine.counter.reserved_for(engine.event_id, CapacityKind.STALL) == 1


def _releases_of(engine, kind: CapacityKind) -> list[tuple]:
    return [call for call in engine.counter.release_calls if call[0] is kind]


@pytest.mark.unit
class TestCancelRaces:
    """A competing writer lands between this request's read and its compare-and-swap"""

    @staticmethod
    def _run_first(engine, monkeypatch, competitor) -> None:
        update_if_version = engine.registration_repo.update_if_version
        state = {'ran': False}

        async def competitor_first(*, registration, expected_version):
            if not state['ran']:
                state['ran'] = True
                await competitor()
            return await update_if_version(
                registration=registration, expected_version=expected_version
            )

        monkeypatch.setattr(engine.registration_repo, 'update_if_version', competitor_first)

    @pytest.mark.asyncio
    async def test_cancel_losing_to_the_sweep_releases_once(self, engine, monkeypatch) -> None:
        bystander = await engine.make_submitted(stall_qty=1)
        registration = await engine.make_submitted(
            classes={'cls_halter': 1}, stall_qty=1, rv_qty=1
        )
        await engine.force_hold_expiry(registration.id)
        self._run_first(engine, monkeypatch, engine.expire.sweep)

        result = await engine.cancel.cancel(registration_id=registration.id)

        assert result.status is RegistrationStatus.CANCELLED
        assert result.payment_status is PaymentStatus.FAILED
        assert _releases_of(engine, CapacityKind.SEAT) == [(CapacityKind.SEAT, None, 1)]
        assert _releases_of(engine, CapacityKind.STALL) == [(CapacityKind.STALL, None, 1)]
        assert {hold.release_reason for hold in engine.hold_repo.owned_by(registration.id)} == {
            'expired'
        }
        # The other registration's capacity survives the race
        assert engine.counter.reserved_for(engine.event_id, CapacityKind.STALL) == 1
        await engine.assert_holds_match_commitment(bystander.id)

    @pytest.mark.asyncio
    async def test_refund_losing_to_another_refund_releases_once(
        self, engine, monkeypatch
    ) -> None:
        bystander = await engine.make_confirmed(stall_qty=1)
        registration = await engine.make_confirmed(stall_qty=1)
        winner: dict = {}

        async def other_refund() -> None:
            winner['record'] = await engine.cancel.cancel_and_refund(
                registration_id=registration.id
            )

        self._run_first(engine, monkeypatch, other_refund)

        result = await engine.cancel.cancel_and_refund(registration_id=registration.id)

        assert result.payment_status is PaymentStatus.REFUNDED
        assert result.refund_id == winner['record'].refund_id
        assert _releases_of(engine, CapacityKind.STALL) == [(CapacityKind.STALL, None, 1)]
        assert engine.counter.reserved_for(engine.event_id, CapacityKind.STALL) == 1
        await engine.assert_holds_match_commitment(bystander.id)

    @pytest.mark.asyncio
    async def test_refund_after_operator_cancel_won_records_refund_only(
        self, engine, monkeypatch
    ) -> None:
        registration = await engine.make_confirmed(rv_qty=1)

        async def operator_cancel() -> None:
            await engine.cancel.cancel(registration_id=registration.id)

        self._run_first(engine, monkeypatch, operator_cancel)

        result = await engine.cancel.cancel_and_refund(registration_id=registration.id)

        assert result.status is RegistrationStatus.CANCELLED
        assert result.payment_status is PaymentStatus.REFUNDED
        assert result.refund_id.startswith('re_sim_')
        assert _releases_of(engine, CapacityKind.RV) == [(CapacityKind.RV, None, 1)]
        assert {hold.release_reason for hold in engine.hold_repo.owned_by(registration.id)} == {
            'operator_cancel'
        }

    @pytest.mark.asyncio
    async def test_cancel_gives_up_on_a_registration_that_keeps_changing(
        self, engine, monkeypatch
    ) -> None:
        registration = await engine.make_submitted(stall_qty=1)

        async def always_stale(*, registration, expected_version):
            return None

        monkeypatch.setattr(engine.registration_repo, 'update_if_version', always_stale)

        with pytest.raises(StateConflictError) as exc_info:
            await engine.cancel.cancel(registration_id=registration.id)

        assert exc_info.value.code == ErrorCode.CONCURRENT_UPDATE
        assert engine.counter.release_calls == []
        assert (await engine.reload(registration.id)).status is RegistrationStatus.SUBMITTED
