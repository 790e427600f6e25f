from datetime import datetime, timezone
from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.exception.exceptions import NotFoundError, StateConflictError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import IRegistrationRepo, ITicketRepo
from src.service.registration.app.service.hold_lifecycle_manager import HoldLifecycleManager
from src.service.registration.domain.check_in_readiness_domain import evaluate_registration
from src.service.registration.domain.entity.ticket_entity import Ticket, ticket_id_for
from src.service.registration.domain.enum import ErrorCode, PaymentStatus, TicketType
from src.service.registration.domain.value_object import HoldOwner, HoldScope


class IssueTicketUseCase:
    """
    Issue an admission ticket to a checked-in registration

    The ticket id is a hash of (registration, ticket type, idempotency key), so
    a retried request resolves to the ticket the first attempt stored.
    """

    def __init__(
        self,
        *,
        registration_repo: IRegistrationRepo,
        ticket_repo: ITicketRepo,
        hold_lifecycle_manager: HoldLifecycleManager,
    ) -> None:
        self.registration_repo = registration_repo
        self.ticket_repo = ticket_repo
        self.hold_lifecycle_manager = hold_lifecycle_manager
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        registration_repo: IRegistrationRepo = Depends(Provide[Container.registration_repo]),
        ticket_repo: ITicketRepo = Depends(Provide[Container.ticket_repo]),
        hold_lifecycle_manager: HoldLifecycleManager = Depends(
            Provide[Container.hold_lifecycle_manager]
        ),
    ) -> Self:
        return cls(
            registration_repo=registration_repo,
            ticket_repo=ticket_repo,
            hold_lifecycle_manager=hold_lifecycle_manager,
        )

    @Logger.io
    async def issue(
        self,
        *,
        registration_id: str,
        idempotency_key: Optional[str],
        ticket_type: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Ticket:
        key = idempotency_key.strip() if idempotency_key else ''
        if not key:
            raise ValidationError(
                'Idempotency-Key header is required to issue a ticket',
                code=ErrorCode.MISSING_IDEMPOTENCY_KEY,
            )
        requested_type = (ticket_type or TicketType.ADMISSION).strip()
        if requested_type not in TicketType:
            raise ValidationError(
                f'ticket_type must be one of {", ".join(TicketType)}; got {requested_type!r}',
                code=ErrorCode.INVALID_TICKET_TYPE,
            )

        with self.tracer.start_as_current_span(
            'registration.issue_ticket', attributes={'registration.id': registration_id}
        ):
            registration = await self.registration_repo.get_by_id(registration_id=registration_id)
            if registration is None:
                raise NotFoundError(
                    f'Registration {registration_id} not found',
                    code=ErrorCode.REGISTRATION_NOT_FOUND,
                )

            # ========== Step 1: Guards ==========
            if not registration.has_party:
                raise StateConflictError(
                    'Registration has no party contact; cannot issue ticket',
                    code=ErrorCode.PARTY_MISSING,
                )
            if registration.payment_status is not PaymentStatus.PAID:
                raise StateConflictError(
                    'Registration payment is not completed; cannot issue ticket',
                    code=ErrorCode.PAYMENT_UNPAID,
                )
            if registration.checked_in_at is None:
                raise StateConflictError(
                    'Registration must be checked in before a ticket can be issued',
                    code=ErrorCode.NOT_CHECKED_IN,
                )

            now = datetime.now(timezone.utc)
            holds = await self.hold_lifecycle_manager.list_active_holds(
                owner=HoldOwner.registration(registration.id),
                scope=HoldScope.event(registration.event_id),
            )
            snapshot = evaluate_registration(registration, holds, now=now)
            if not snapshot.ready:
                raise StateConflictError(
                    f'Registration {registration.id} is blocked from ticket issuance: '
                    f'{", ".join(snapshot.blocker_codes)}',
                    code=ErrorCode.CHECKIN_BLOCKED,
                    details={'check_in_status': snapshot.to_dict()},
                )

            # ========== Step 2: Replay by derived id ==========
            resolved_type = TicketType(requested_type)
            existing = await self.ticket_repo.get_by_id(
                ticket_id=ticket_id_for(
                    registration_id=registration.id,
                    ticket_type=resolved_type,
                    idempotency_key=key,
                )
            )
            if existing is not None:
                Logger.base.info(f'🔂 [TICKET] {existing.id} replayed for {registration.id}')
                return existing

            # ========== Step 3: Issue ==========
            ticket = await self.ticket_repo.create_if_absent(
                ticket=Ticket.issue(
                    event_id=registration.event_id,
                    registration_id=registration.id,
                    ticket_type=resolved_type,
                    idempotency_key=key,
                    issued_by=actor,
                    now=now,
                )
            )
            Logger.base.info(f'🎫 [TICKET] {ticket.id} ({ticket.ticket_type}) → {registration.id}')
            return ticket
