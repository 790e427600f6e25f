"""
Registration test fixtures

In-memory implementations of the registration driven ports.
They honour the same contracts as the asyncpg / Kvrocks adapters, including the
store-level uniqueness guard on active stall / RV holds, and add a few failure
hooks so tests can stage partial failures.
"""

import asyncio
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import attrs
import orjson
import pytest

from src.platform.exception.exceptions import ResourceConflictError
from src.service.registration.app.command.assign_resources_use_case import (
    AssignResourcesUseCase,
)
from src.service.registration.app.command.cancel_registration_use_case import (
    CancelRegistrationUseCase,
)
from src.service.registration.app.command.check_in_registration_use_case import (
    CheckInRegistrationUseCase,
)
from src.service.registration.app.command.checkout_registration_use_case import (
    CheckoutRegistrationUseCase,
)
from src.service.registration.app.command.create_registration_use_case import (
    CreateRegistrationUseCase,
)
from src.service.registration.app.command.expire_registration_holds_use_case import (
    ExpireRegistrationHoldsUseCase,
)
from src.service.registration.app.command.issue_ticket_use_case import IssueTicketUseCase
from src.service.registration.app.command.reconcile_payment_webhook_use_case import (
    ReconcilePaymentWebhookUseCase,
)
from src.service.registration.app.command.resend_confirmation_use_case import (
    ResendConfirmationUseCase,
)
from src.service.registration.app.command.update_registration_use_case import (
    UpdateRegistrationUseCase,
)
from src.service.registration.app.dto import NotificationMessage
from src.service.registration.app.dto.notification_dto import (
    MESSAGE_STATUS_FAILED,
    MESSAGE_STATUS_SENT,
)
from src.service.registration.app.interface import (
    HoldFilter,
    ICapacityCounter,
    IEventQueryRepo,
    INotificationDispatcher,
    IRegistrationRepo,
    IReservationHoldRepo,
    ITicketRepo,
)
from src.service.registration.app.query.get_check_in_readiness_use_case import (
    GetCheckInReadinessUseCase,
)
from src.service.registration.app.query.get_registration_use_case import GetRegistrationUseCase
from src.service.registration.app.query.list_registrations_use_case import (
    ListRegistrationsUseCase,
)
from src.service.registration.app.service.hold_lifecycle_manager import HoldLifecycleManager
from src.service.registration.app.service.registration_release_service import (
    RegistrationReleaseService,
)
from src.service.registration.app.service.resource_assignment_service import (
    ResourceAssignmentService,
)
from src.service.registration.domain.entity.event_entity import Event, EventLine, Resource
from src.service.registration.domain.entity.registration_entity import (
    Registration,
    RegistrationLine,
)
from src.service.registration.domain.entity.reservation_hold_entity import ReservationHold
from src.service.registration.domain.entity.ticket_entity import Ticket
from src.service.registration.domain.enum import (
    CapacityKind,
    ErrorCode,
    ItemType,
    RegistrationStatus,
)
from src.service.registration.driven_adapter.payment.simulated_payment_gateway_impl import (
    SIMULATED_VALID_SIGNATURE,
    SimulatedPaymentGatewayImpl,
    sign_payload,
)
from src.service.registration.driven_adapter.validator.resource_validator_impl import (
    EventLineValidatorImpl,
    PhysicalResourceValidatorImpl,
)


_EXCLUSIVE_ITEM_TYPES = (ItemType.STALL, ItemType.RV)


class InMemoryRegistrationRepo(IRegistrationRepo):
    def __init__(self) -> None:
        self.rows: dict[str, Registration] = {}

    async def get_by_id(self, *, registration_id: str) -> Optional[Registration]:
        return self.rows.get(registration_id)

    async def create(self, *, registration: Registration) -> Registration:
        self.rows[registration.id] = registration
        return registration

    async def update(self, *, registration: Registration) -> Registration:
        if registration.id not in self.rows:
            raise ValueError(f'Registration {registration.id} does not exist')
        stored = attrs.evolve(registration, version=self.rows[registration.id].version + 1)
        self.rows[registration.id] = stored
        return stored

    async def update_if_version(
        self, *, registration: Registration, expected_version: int
    ) -> Optional[Registration]:
        current = self.rows.get(registration.id)
        if current is None or current.version != expected_version:
            return None
        return await self.update(registration=registration)

    async def list_by_status(
        self, *, status: RegistrationStatus, limit: int
    ) -> list[Registration]:
        matching = [row for row in self.rows.values() if row.status is status]
        matching.sort(key=lambda row: (row.hold_expires_at is None, row.hold_expires_at))
        return matching[:limit]

    async def list_by_event(
        self, *, event_id: str, status: Optional[RegistrationStatus] = None, limit: int
    ) -> list[Registration]:
        matching = [
            row
            for row in self.rows.values()
            if row.event_id == event_id and (status is None or row.status is status)
        ]
        matching.sort(key=lambda row: (row.created_at, row.id), reverse=True)
        return matching[:limit]


class InMemoryTicketRepo(ITicketRepo):
    def __init__(self) -> None:
        self.rows: dict[str, Ticket] = {}
        self.create_calls = 0

    async def get_by_id(self, *, ticket_id: str) -> Optional[Ticket]:
        return self.rows.get(ticket_id)

    async def create_if_absent(self, *, ticket: Ticket) -> Ticket:
        self.create_calls += 1
        return self.rows.setdefault(ticket.id, ticket)


class InMemoryReservationHoldRepo(IReservationHoldRepo):
    def __init__(self) -> None:
        self.rows: dict[str, ReservationHold] = {}
        self.fail_create_after: Optional[int] = None  # creates allowed before failing
        self.fail_update_ids: set[str] = set()
        self.create_calls = 0

    async def get_by_id(self, *, hold_id: str) -> Optional[ReservationHold]:
        return self.rows.get(hold_id)

    async def list_holds(
        self, *, hold_filter: HoldFilter, limit: int = 200
    ) -> list[ReservationHold]:
        # Yield so concurrent callers interleave like real I/O
        await asyncio.sleep(0)
        matching = [hold for hold in self.rows.values() if hold_filter.matches(hold)]
        return list(reversed(matching))[:limit]

    async def create(self, *, hold: ReservationHold) -> ReservationHold:
        if self.fail_create_after is not None and self.create_calls >= self.fail_create_after:
            raise RuntimeError('simulated crash while inserting hold')
        self.create_calls += 1
        if hold.resource_id is not None and hold.item_type in _EXCLUSIVE_ITEM_TYPES:
            for existing in self.rows.values():
                if (
                    existing.is_active
                    and existing.scope_id == hold.scope_id
                    and existing.item_type is hold.item_type
                    and existing.resource_id == hold.resource_id
                ):
                    raise ResourceConflictError(
                        f'{hold.item_type} {hold.resource_id} already has an active hold',
                        code=ErrorCode.RESOURCE_ALREADY_ASSIGNED,
                    )
        self.rows[hold.id] = hold
        return hold

    async def update(self, *, hold: ReservationHold) -> ReservationHold:
        if hold.id in self.fail_update_ids:
            raise RuntimeError(f'simulated failure updating hold {hold.id}')
        if hold.id not in self.rows:
            raise ValueError(f'Reservation hold {hold.id} does not exist')
        self.rows[hold.id] = hold
        return hold

    def owned_by(self, registration_id: str) -> list[ReservationHold]:
        return [hold for hold in self.rows.values() if hold.owner_id == registration_id]


class InMemoryEventQueryRepo(IEventQueryRepo):
    def __init__(self) -> None:
        self.events: dict[str, Event] = {}
        self.lines: dict[str, list[EventLine]] = defaultdict(list)
        self.resources: dict[str, Resource] = {}

    async def get_by_id(self, *, event_id: str) -> Optional[Event]:
        return self.events.get(event_id)

    async def list_event_lines(self, *, event_id: str) -> list[EventLine]:
        return list(self.lines.get(event_id, []))

    async def list_resources(self, *, resource_ids: list[str]) -> list[Resource]:
        return [self.resources[rid] for rid in resource_ids if rid in self.resources]


class InMemoryCapacityCounter(ICapacityCounter):
    def __init__(self) -> None:
        self.caps: dict[tuple[str, CapacityKind, Optional[str]], int] = {}
        self.reserved: dict[tuple[str, CapacityKind, Optional[str]], int] = defaultdict(int)
        self.fail_release: set[tuple[CapacityKind, Optional[str]]] = set()
        self.reserve_calls: list[tuple[CapacityKind, Optional[str], int]] = []
        self.release_calls: list[tuple[CapacityKind, Optional[str], int]] = []

    def set_cap(
        self, event_id: str, kind: CapacityKind, cap: int, line_id: Optional[str] = None
    ) -> None:
        self.caps[(event_id, kind, line_id)] = cap

    def reserved_for(self, event_id: str, kind: CapacityKind, line_id: Optional[str] = None) -> int:
        return self.reserved[(event_id, kind, line_id)]

    def total_reserved(self) -> int:
        return sum(self.reserved.values())

    async def reserve(
        self, *, event_id: str, kind: CapacityKind, qty: int = 1, line_id: Optional[str] = None
    ) -> bool:
        self.reserve_calls.append((kind, line_id, qty))
        key = (event_id, kind, line_id)
        cap = self.caps.get(key)
        if cap is not None and self.reserved[key] + qty > cap:
            return False
        self.reserved[key] += qty
        return True

    async def release(
        self, *, event_id: str, kind: CapacityKind, qty: int = 1, line_id: Optional[str] = None
    ) -> None:
        self.release_calls.append((kind, line_id, qty))
        if (kind, line_id) in self.fail_release:
            raise RuntimeError(f'simulated release failure for {kind}:{line_id}')
        key = (event_id, kind, line_id)
        self.reserved[key] = max(0, self.reserved[key] - qty)


class RecordingNotificationDispatcher(INotificationDispatcher):
    def __init__(self) -> None:
        self.emails: list[dict[str, Any]] = []
        self.sms: list[dict[str, Any]] = []
        self.messages: dict[str, NotificationMessage] = {}
        self.retried: list[str] = []

    def _store(self, message_id: str, channel: str) -> str:
        self.messages[message_id] = NotificationMessage(
            id=message_id, channel=channel, status=MESSAGE_STATUS_SENT
        )
        return message_id

    def mark_failed(self, message_id: str, *, error_message: str = 'mailbox unavailable') -> None:
        self.messages[message_id] = attrs.evolve(
            self.messages[message_id], status=MESSAGE_STATUS_FAILED, error_message=error_message
        )

    async def enqueue_email(
        self, *, to: str, template_key: str, template_vars: dict[str, Any]
    ) -> str:
        self.emails.append({'to': to, 'template_key': template_key, 'template_vars': template_vars})
        return self._store(f'msg_email_{len(self.emails)}', 'email')

    async def enqueue_sms(self, *, to: str, template_key: str, template_vars: dict[str, Any]) -> str:
        self.sms.append({'to': to, 'template_key': template_key, 'template_vars': template_vars})
        return self._store(f'msg_sms_{len(self.sms)}', 'sms')

    async def get_message(self, *, message_id: str) -> Optional[NotificationMessage]:
        return self.messages.get(message_id)

    async def retry_message(self, *, message_id: str) -> NotificationMessage:
        self.retried.append(message_id)
        retried = attrs.evolve(
            self.messages[message_id],
            status=MESSAGE_STATUS_SENT,
            sent_at=datetime.now(timezone.utc),
            error_message=None,
        )
        self.messages[message_id] = retried
        return retried


EVENT_ID = 'evt_spring_show'
OTHER_EVENT_ID = 'evt_autumn_show'
WEBHOOK_SECRET = 'whsec_test_secret'

# class id → (line id, fee)
CLASS_LINES = {
    'cls_halter': ('line_halter', 3500),
    'cls_trail': ('line_trail', 2500),
    'cls_barrels': ('line_barrels', 4000),
    'cls_pleasure': ('line_pleasure', 1000),
}


def line_id_for(class_id: str) -> str:
    return CLASS_LINES[class_id][0]


def build_event_repo() -> InMemoryEventQueryRepo:
    repo = InMemoryEventQueryRepo()
    repo.events[EVENT_ID] = Event(
        id=EVENT_ID,
        name='Spring Show',
        status='open',
        currency='usd',
        rv_enabled=True,
        rv_unit_amount=5000,
        stall_enabled=True,
        stall_unit_amount=7500,
    )
    repo.events[OTHER_EVENT_ID] = Event(id=OTHER_EVENT_ID, name='Autumn Show', status='draft')
    for class_id, (line_id, fee) in CLASS_LINES.items():
        repo.lines[EVENT_ID].append(
            EventLine(id=line_id, event_id=EVENT_ID, class_id=class_id, name=class_id, fee_amount=fee)
        )
    for i in range(1, 5):
        repo.resources[f'stall_{i}'] = Resource(
            id=f'stall_{i}', resource_type='stall', tags=[f'event:{EVENT_ID}']
        )
    for i in range(1, 4):
        repo.resources[f'rv_{i}'] = Resource(id=f'rv_{i}', resource_type='rv', tags=[f'event:{EVENT_ID}'])
    repo.resources['stall_elsewhere'] = Resource(
        id='stall_elsewhere', resource_type='stall', tags=[f'event:{OTHER_EVENT_ID}']
    )
    return repo


def webhook_body(
    *, event_type: str, registration_id: Optional[str], payment_intent_id: str = 'pi_test'
) -> bytes:
    metadata = {'registrationId': registration_id} if registration_id else {}
    return orjson.dumps(
        {
            'id': f'evt_{event_type}_{registration_id}',
            'type': event_type,
            'data': {'object': {'id': payment_intent_id, 'metadata': metadata}},
        }
    )


class RegistrationEngine:
    """Every service and use case wired onto the in-memory ports"""

    event_id = EVENT_ID
    other_event_id = OTHER_EVENT_ID
    line_id_for = staticmethod(line_id_for)

    def __init__(self) -> None:
        self.registration_repo = InMemoryRegistrationRepo()
        self.hold_repo = InMemoryReservationHoldRepo()
        self.event_repo = build_event_repo()
        self.counter = InMemoryCapacityCounter()
        self.gateway = SimulatedPaymentGatewayImpl(webhook_secret=WEBHOOK_SECRET)
        self.dispatcher = RecordingNotificationDispatcher()
        self.ticket_repo = InMemoryTicketRepo()

        self.hold_lifecycle_manager = HoldLifecycleManager(hold_repo=self.hold_repo)
        self.release_service = RegistrationReleaseService(
            capacity_counter=self.counter, hold_lifecycle_manager=self.hold_lifecycle_manager
        )
        self.assignment_service = ResourceAssignmentService(
            registration_repo=self.registration_repo,
            hold_repo=self.hold_repo,
            hold_lifecycle_manager=self.hold_lifecycle_manager,
        )

        self.create = CreateRegistrationUseCase(
            registration_repo=self.registration_repo, event_query_repo=self.event_repo
        )
        self.checkout = CheckoutRegistrationUseCase(
            registration_repo=self.registration_repo,
            event_query_repo=self.event_repo,
            capacity_counter=self.counter,
            payment_gateway=self.gateway,
            hold_lifecycle_manager=self.hold_lifecycle_manager,
        )
        self.assign = AssignResourcesUseCase(
            resource_assignment_service=self.assignment_service,
            stall_validator=PhysicalResourceValidatorImpl(
                event_query_repo=self.event_repo, resource_type='stall'
            ),
            rv_validator=PhysicalResourceValidatorImpl(
                event_query_repo=self.event_repo, resource_type='rv'
            ),
            event_line_validator=EventLineValidatorImpl(event_query_repo=self.event_repo),
        )
        self.cancel = CancelRegistrationUseCase(
            registration_repo=self.registration_repo,
            payment_gateway=self.gateway,
            registration_release_service=self.release_service,
        )
        self.expire = ExpireRegistrationHoldsUseCase(
            registration_repo=self.registration_repo,
            registration_release_service=self.release_service,
        )
        self.webhook = ReconcilePaymentWebhookUseCase(
            registration_repo=self.registration_repo,
            payment_gateway=self.gateway,
            notification_dispatcher=self.dispatcher,
            hold_lifecycle_manager=self.hold_lifecycle_manager,
        )
        self.check_in = CheckInRegistrationUseCase(
            registration_repo=self.registration_repo,
            hold_lifecycle_manager=self.hold_lifecycle_manager,
        )
        self.get = GetRegistrationUseCase(
            registration_repo=self.registration_repo, reservation_hold_repo=self.hold_repo
        )
        self.readiness = GetCheckInReadinessUseCase(
            registration_repo=self.registration_repo,
            hold_lifecycle_manager=self.hold_lifecycle_manager,
        )
        self.update = UpdateRegistrationUseCase(registration_repo=self.registration_repo)
        self.list = ListRegistrationsUseCase(registration_repo=self.registration_repo)
        self.issue_ticket = IssueTicketUseCase(
            registration_repo=self.registration_repo,
            ticket_repo=self.ticket_repo,
            hold_lifecycle_manager=self.hold_lifecycle_manager,
        )
        self.resend = ResendConfirmationUseCase(
            registration_repo=self.registration_repo, notification_dispatcher=self.dispatcher
        )

    # ---------- helpers ----------

    async def make_draft(
        self,
        *,
        classes: Optional[dict[str, int]] = None,
        stall_qty: int = 0,
        rv_qty: int = 0,
        event_id: str = EVENT_ID,
        party_email: Optional[str] = 'rider@example.com',
        party_phone: Optional[str] = '+15555550100',
    ) -> Registration:
        return await self.create.create(
            event_id=event_id,
            lines=[
                RegistrationLine(class_id=class_id, qty=qty)
                for class_id, qty in (classes or {}).items()
            ],
            stall_qty=stall_qty,
            rv_qty=rv_qty,
            party_email=party_email,
            party_phone=party_phone,
        )

    async def make_submitted(self, **kwargs: Any) -> Registration:
        draft = await self.make_draft(**kwargs)
        await self.checkout.checkout(registration_id=draft.id)
        return await self.reload(draft.id)

    async def make_confirmed(self, **kwargs: Any) -> Registration:
        submitted = await self.make_submitted(**kwargs)
        await self.deliver_webhook(
            event_type='payment_intent.succeeded',
            registration_id=submitted.id,
            payment_intent_id=submitted.payment_intent_id or 'pi_test',
        )
        return await self.reload(submitted.id)

    async def deliver_webhook(
        self, *, event_type: str, registration_id: Optional[str], payment_intent_id: str = 'pi_test'
    ) -> dict[str, bool]:
        return await self.webhook.handle(
            raw_body=webhook_body(
                event_type=event_type,
                registration_id=registration_id,
                payment_intent_id=payment_intent_id,
            ),
            signature=SIMULATED_VALID_SIGNATURE,
        )

    async def reload(self, registration_id: str) -> Registration:
        registration = await self.registration_repo.get_by_id(registration_id=registration_id)
        assert registration is not None
        return registration

    async def set_hold_expires_in(self, registration_id: str, *, seconds: int) -> Registration:
        """Move the hold deadline relative to now; negative values are in the past"""
        registration = await self.reload(registration_id)
        deadline = datetime.now(timezone.utc) + timedelta(seconds=seconds)
        return await self.registration_repo.update(
            registration=attrs.evolve(registration, hold_expires_at=deadline)
        )

    async def force_hold_expiry(self, registration_id: str, *, seconds_ago: int = 60) -> Registration:
        return await self.set_hold_expires_in(registration_id, seconds=-seconds_ago)

    def active_holds(self, registration_id: str) -> list[ReservationHold]:
        return [hold for hold in self.hold_repo.owned_by(registration_id) if hold.is_active]

    def held_quantities(self, registration_id: str) -> dict[tuple[ItemType, Optional[str]], int]:
        """Active block + per-resource qty per (item type, event line)"""
        totals: dict[tuple[ItemType, Optional[str]], int] = defaultdict(int)
        for hold in self.active_holds(registration_id):
            totals[(hold.item_type, hold.event_line_id)] += hold.qty
        return dict(totals)

    async def assert_holds_match_commitment(self, registration_id: str) -> None:
        registration = await self.reload(registration_id)
        committed: dict[tuple[ItemType, Optional[str]], int] = {}
        if registration.status in (RegistrationStatus.SUBMITTED, RegistrationStatus.CONFIRMED):
            if registration.stall_qty:
                committed[(ItemType.STALL, None)] = registration.stall_qty
            if registration.rv_qty:
                committed[(ItemType.RV, None)] = registration.rv_qty
            for line in registration.lines:
                key = (ItemType.CLASS_ENTRY, line_id_for(line.class_id))
                committed[key] = committed.get(key, 0) + line.qty
        assert self.held_quantities(registration_id) == committed


@pytest.fixture
def engine() -> RegistrationEngine:
    return RegistrationEngine()


@pytest.fixture
def sign_webhook() -> Callable[[bytes], str]:
    def _sign(raw_body: bytes) -> str:
        return sign_payload(raw_body=raw_body, secret=WEBHOOK_SECRET, timestamp=1_700_000_000)

    return _sign
