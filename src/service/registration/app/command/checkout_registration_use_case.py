from datetime import datetime, timedelta, timezone
from functools import partial
import time
from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.exception.exceptions import (
    CapacityExhaustedError,
    ConsistencyError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.registration_metrics import registration_metrics
from src.service.registration.app.dto import CheckoutResult
from src.service.registration.app.interface import (
    ICapacityCounter,
    IEventQueryRepo,
    IPaymentGateway,
    IRegistrationRepo,
)
from src.service.registration.app.service.compensation import CompensationList
from src.service.registration.app.service.hold_lifecycle_manager import HoldLifecycleManager
from src.service.registration.app.service.registration_release_service import (
    class_line_release_quantities,
)
from src.service.registration.app.service.resource_assignment_service import (
    group_holds_for_diagnostics,
)
from src.service.registration.domain.entity.registration_entity import Registration
from src.service.registration.domain.entity.reservation_hold_entity import ReservationHold
from src.service.registration.domain.enum import (
    CapacityKind,
    ErrorCode,
    ItemType,
    RegistrationStatus,
    ReleaseReason,
)
from src.service.registration.domain.fee_quote_domain import FeeQuote, quote_registration_fees
from src.service.registration.domain.value_object import HoldOwner, HoldScope


class CheckoutRegistrationUseCase:
    """
    Checkout saga: draft registration → submitted with a live payment intent

    Flow:
    1. Replay check (existing intent, expired hold, idempotency key)
    2. Draft-only guard
    3. Event must be open
    4. Server-side fee quote
    5-7. Reserve seat / RV / stall counters
    8. Per class line: reserve only the missing delta, create or reuse its block hold
    9. Ledger block holds for seat / RV / stall
    10. On failure: run the compensation list, rethrow
    11. Payment intent (idempotent by key)
    12. Persist as submitted with hold expiry

    Counters and holds live in different stores with no shared transaction,
    so every forward step that takes capacity registers its undo before the
    next step runs.
    """

    def __init__(
        self,
        *,
        registration_repo: IRegistrationRepo,
        event_query_repo: IEventQueryRepo,
        capacity_counter: ICapacityCounter,
        payment_gateway: IPaymentGateway,
        hold_lifecycle_manager: HoldLifecycleManager,
        hold_ttl_seconds: int = settings.HOLD_TTL_SECONDS,
    ) -> None:
        self.registration_repo = registration_repo
        self.event_query_repo = event_query_repo
        self.capacity_counter = capacity_counter
        self.payment_gateway = payment_gateway
        self.hold_lifecycle_manager = hold_lifecycle_manager
        self.hold_ttl = timedelta(seconds=hold_ttl_seconds)
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        registration_repo: IRegistrationRepo = Depends(Provide[Container.registration_repo]),
        event_query_repo: IEventQueryRepo = Depends(Provide[Container.event_query_repo]),
        capacity_counter: ICapacityCounter = Depends(Provide[Container.capacity_counter]),
        payment_gateway: IPaymentGateway = Depends(Provide[Container.payment_gateway]),
        hold_lifecycle_manager: HoldLifecycleManager = Depends(
            Provide[Container.hold_lifecycle_manager]
        ),
    ) -> Self:
        return cls(
            registration_repo=registration_repo,
            event_query_repo=event_query_repo,
            capacity_counter=capacity_counter,
            payment_gateway=payment_gateway,
            hold_lifecycle_manager=hold_lifecycle_manager,
        )

    @Logger.io
    async def checkout(
        self, *, registration_id: str, idempotency_key: Optional[str] = None
    ) -> CheckoutResult:
        started = time.perf_counter()
        with self.tracer.start_as_current_span(
            'registration.checkout', attributes={'registration.id': registration_id}
        ):
            registration = await self.registration_repo.get_by_id(registration_id=registration_id)
            if registration is None:
                raise NotFoundError(
                    f'Registration {registration_id} not found',
                    code=ErrorCode.REGISTRATION_NOT_FOUND,
                )
            now = datetime.now(timezone.utc)

            # ========== Step 1: Replay check ==========
            replay = self._replay(registration=registration, idempotency_key=idempotency_key, now=now)
            if replay is not None:
                registration_metrics.checkout_requests.labels(result='replayed').inc()
                Logger.base.info(f'🔁 [CHECKOUT] Replayed existing intent for {registration.id}')
                return replay

            # ========== Step 2: Draft only ==========
            if registration.status is not RegistrationStatus.DRAFT:
                raise StateConflictError(
                    f'Registration is {registration.status}; checkout needs a draft',
                    code=ErrorCode.INVALID_STATE,
                )

            # ========== Step 3: Event must be open ==========
            event = await self.event_query_repo.get_by_id(event_id=registration.event_id)
            if event is None:
                raise ValidationError(
                    f'Event {registration.event_id} not found', code=ErrorCode.EVENT_NOT_FOUND
                )
            if not event.is_open:
                raise StateConflictError(
                    f'Event {event.id} is {event.status}', code=ErrorCode.EVENT_NOT_OPEN
                )

            # ========== Step 4: Authoritative fees ==========
            event_lines = await self.event_query_repo.list_event_lines(event_id=event.id)
            quote = quote_registration_fees(
                event=event, event_lines=event_lines, registration=registration
            )

            owner = HoldOwner.registration(registration.id)
            scope = HoldScope.event(event.id)
            hold_expires_at = now + self.hold_ttl
            compensation = CompensationList(saga=f'checkout:{registration.id}')

            try:
                # ========== Steps 5-7: Seat / RV / stall counters ==========
                await self._reserve_counters(
                    registration=registration, compensation=compensation
                )

                pre_existing_ids = {
                    hold.id
                    for hold in await self.hold_lifecycle_manager.list_active_holds(
                        owner=owner, scope=scope
                    )
                }

                # ========== Step 8: Class lines (delta reconciliation) ==========
                await self._reserve_class_lines(
                    quote=quote,
                    owner=owner,
                    scope=scope,
                    hold_expires_at=hold_expires_at,
                    pre_existing_ids=pre_existing_ids,
                    compensation=compensation,
                )

                # ========== Step 9: Ledger block holds ==========
                for item_type, qty in (
                    (ItemType.SEAT, 1),
                    (ItemType.RV, registration.rv_qty),
                    (ItemType.STALL, registration.stall_qty),
                ):
                    hold = await self.hold_lifecycle_manager.create_block_hold(
                        owner=owner,
                        scope=scope,
                        item_type=item_type,
                        qty=qty,
                        expires_at=hold_expires_at,
                    )
                    self._track_new_hold(
                        hold=hold, pre_existing_ids=pre_existing_ids, compensation=compensation
                    )

                # ========== Step 11: Payment intent ==========
                intent = await self.payment_gateway.create_intent(
                    amount=quote.total_amount,
                    currency=quote.currency,
                    metadata={'registration_id': registration.id, 'event_id': event.id},
                    idempotency_key=idempotency_key or registration.id,
                )

                # ========== Step 12: Persist submission ==========
                submitted = await self.registration_repo.update(
                    registration=registration.submit(
                        payment_intent_id=intent.id,
                        client_secret=intent.client_secret,
                        idempotency_key=idempotency_key or registration.id,
                        fees=list(quote.fees),
                        total_amount=quote.total_amount,
                        currency=quote.currency,
                        hold_ttl=self.hold_ttl,
                        now=now,
                    )
                )
            except Exception:
                # ========== Step 10: Compensation ==========
                Logger.base.warning(
                    f'⚠️ [CHECKOUT] {registration.id} failed, compensating '
                    f'{len(compensation)} step(s)'
                )
                await compensation.run()
                registration_metrics.checkout_requests.labels(result='failed').inc()
                raise

            compensation.clear()
            registration_metrics.checkout_requests.labels(result='submitted').inc()
            registration_metrics.checkout_duration.observe(time.perf_counter() - started)
            Logger.base.info(
                f'✅ [CHECKOUT] {submitted.id} submitted: amount={quote.total_amount} '
                f'{quote.currency}, holds expire {submitted.hold_expires_at}'
            )

            # ========== Step 13: Hand back the intent ==========
            return CheckoutResult(
                registration_id=submitted.id,
                payment_intent_id=intent.id,
                client_secret=intent.client_secret,
                hold_expires_at=submitted.hold_expires_at,
            )

    def _replay(
        self, *, registration: Registration, idempotency_key: Optional[str], now: datetime
    ) -> Optional[CheckoutResult]:
        if not registration.has_live_payment_intent:
            return None
        if registration.status is RegistrationStatus.SUBMITTED:
            if registration.hold_expired(now=now):
                raise StateConflictError(
                    f'Checkout hold for {registration.id} expired at {registration.hold_expires_at}',
                    code=ErrorCode.HOLD_EXPIRED,
                )
        elif not (idempotency_key and idempotency_key == registration.checkout_idempotency_key):
            return None
        return CheckoutResult(
            registration_id=registration.id,
            payment_intent_id=registration.payment_intent_id,  # type: ignore[arg-type]
            client_secret=registration.payment_intent_client_secret,  # type: ignore[arg-type]
            hold_expires_at=registration.hold_expires_at,
            replayed=True,
        )

    async def _reserve(
        self,
        *,
        event_id: str,
        kind: CapacityKind,
        qty: int,
        code: str,
        compensation: CompensationList,
        line_id: Optional[str] = None,
    ) -> None:
        reserved = await self.capacity_counter.reserve(
            event_id=event_id, kind=kind, qty=qty, line_id=line_id
        )
        if not reserved:
            registration_metrics.capacity_rejections.labels(kind=str(kind)).inc()
            raise CapacityExhaustedError(
                f'No {kind} capacity left for {qty} unit(s)'
                + (f' on line {line_id}' if line_id else ''),
                code=code,
                details={'line_id': line_id} if line_id else None,
            )
        compensation.add(
            f'release {kind}{f":{line_id}" if line_id else ""} x{qty}',
            partial(
                self.capacity_counter.release,
                event_id=event_id,
                kind=kind,
                qty=qty,
                line_id=line_id,
            ),
        )

    async def _reserve_counters(
        self, *, registration: Registration, compensation: CompensationList
    ) -> None:
        event_id = registration.event_id
        await self._reserve(
            event_id=event_id,
            kind=CapacityKind.SEAT,
            qty=1,
            code=ErrorCode.CAPACITY_FULL,
            compensation=compensation,
        )
        if registration.rv_qty > 0:
            await self._reserve(
                event_id=event_id,
                kind=CapacityKind.RV,
                qty=registration.rv_qty,
                code=ErrorCode.RV_CAPACITY_FULL,
                compensation=compensation,
            )
        if registration.stall_qty > 0:
            await self._reserve(
                event_id=event_id,
                kind=CapacityKind.STALL,
                qty=registration.stall_qty,
                code=ErrorCode.STALL_CAPACITY_FULL,
                compensation=compensation,
            )

    async def _reserve_class_lines(
        self,
        *,
        quote: FeeQuote,
        owner: HoldOwner,
        scope: HoldScope,
        hold_expires_at: datetime,
        pre_existing_ids: set[str],
        compensation: CompensationList,
    ) -> None:
        if not quote.class_lines:
            return

        existing = await self.hold_lifecycle_manager.list_active_holds(
            owner=owner, scope=scope, item_type=ItemType.CLASS_ENTRY
        )
        already_reserved = class_line_release_quantities(existing)
        assigned_lines = {hold.event_line_id for hold in existing if not hold.is_block}

        for resolved in quote.class_lines:
            line = resolved.event_line
            delta = resolved.qty - already_reserved.get(line.id, 0)
            if delta > 0:
                await self._reserve(
                    event_id=scope.id,
                    kind=CapacityKind.CLASS_LINE,
                    qty=delta,
                    line_id=line.id,
                    code=ErrorCode.CLASS_CAPACITY_FULL,
                    compensation=compensation,
                )
            Logger.base.debug(
                f'[CHECKOUT] line={line.id} requested={resolved.qty} '
                f'already={already_reserved.get(line.id, 0)} delta={max(delta, 0)}'
            )
            if line.id in assigned_lines:
                continue  # converted to per-entry holds already
            hold = await self.hold_lifecycle_manager.create_block_hold(
                owner=owner,
                scope=scope,
                item_type=ItemType.CLASS_ENTRY,
                qty=resolved.qty,
                line_id=line.id,
                expires_at=hold_expires_at,
                metadata={'class_id': line.class_id},
            )
            self._track_new_hold(
                hold=hold, pre_existing_ids=pre_existing_ids, compensation=compensation
            )

        after = await self.hold_lifecycle_manager.list_active_holds(
            owner=owner, scope=scope, item_type=ItemType.CLASS_ENTRY
        )
        present = {hold.event_line_id for hold in after}
        missing = [r.event_line.id for r in quote.class_lines if r.event_line.id not in present]
        if missing:
            raise ConsistencyError(
                f'Class block holds missing after reservation for lines {missing}',
                code=ErrorCode.BLOCK_HOLD_MISSING,
                details={
                    'missing_event_line_ids': missing,
                    'existing_holds': group_holds_for_diagnostics(after),
                },
            )

    def _track_new_hold(
        self,
        *,
        hold: Optional[ReservationHold],
        pre_existing_ids: set[str],
        compensation: CompensationList,
    ) -> None:
        # Holds reused from an earlier attempt are backed by that attempt's counters
        if hold is None or hold.id in pre_existing_ids:
            return
        compensation.add(
            f'release hold {hold.item_type}:{hold.id}',
            partial(
                self.hold_lifecycle_manager.release_hold,
                hold=hold,
                reason=ReleaseReason.CHECKOUT_FAILED,
            ),
        )
