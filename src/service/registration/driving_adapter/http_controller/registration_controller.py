from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, status

from src.platform.logging.loguru_io import Logger
from src.service.registration.app.command.assign_resources_use_case import AssignResourcesUseCase
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
from src.service.registration.app.command.resend_confirmation_use_case import (
    ResendConfirmationUseCase,
)
from src.service.registration.app.command.update_registration_use_case import (
    UpdateRegistrationUseCase,
)
from src.service.registration.app.dto import AssignmentResult, ConfirmationResendResult
from src.service.registration.app.query.get_check_in_readiness_use_case import (
    GetCheckInReadinessUseCase,
)
from src.service.registration.app.query.get_registration_use_case import GetRegistrationUseCase
from src.service.registration.app.query.list_registrations_use_case import (
    ListRegistrationsUseCase,
)
from src.service.registration.domain.entity.registration_entity import RegistrationLine
from src.service.registration.driving_adapter.http_controller.schema.registration_schema import (
    AssignClassesRequest,
    AssignmentResponse,
    AssignResourcesRequest,
    AssignRvSitesRequest,
    AssignStallsRequest,
    CheckInRequest,
    CheckInStatusResponse,
    CheckoutResponse,
    ConfirmationResendResponse,
    ExpireSweepResponse,
    HoldResponse,
    NotificationMessageSchema,
    RegistrationCreateRequest,
    RegistrationListResponse,
    RegistrationResponse,
    RegistrationUpdateRequest,
    ResendAttemptSchema,
    ResourceHoldsResponse,
    TicketIssueRequest,
    TicketResponse,
)


router = APIRouter()


def _assignment_response(result: AssignmentResult) -> AssignmentResponse:
    return AssignmentResponse(
        holds=[HoldResponse.model_validate(hold) for hold in result.holds],
        resource_holds=[HoldResponse.model_validate(hold) for hold in result.resource_holds],
        released_block_holds=[
            HoldResponse.model_validate(hold) for hold in result.released_block_holds
        ],
    )


def _resource_holds_response(result: AssignmentResult) -> ResourceHoldsResponse:
    holds = [HoldResponse.model_validate(hold) for hold in result.resource_holds]
    return ResourceHoldsResponse(holds=holds, count=len(holds))


def _resend_response(result: ConfirmationResendResult) -> ConfirmationResendResponse:
    return ConfirmationResendResponse(
        registration_id=result.registration_id,
        rate_limited=result.rate_limited,
        attempted=ResendAttemptSchema(email=result.attempted_email, sms=result.attempted_sms),
        email=NotificationMessageSchema.model_validate(result.email) if result.email else None,
        sms=NotificationMessageSchema.model_validate(result.sms) if result.sms else None,
    )


@router.post('', status_code=status.HTTP_201_CREATED)
@Logger.io
async def create_registration(
    request: RegistrationCreateRequest,
    use_case: CreateRegistrationUseCase = Depends(CreateRegistrationUseCase.depends),
) -> RegistrationResponse:
    registration = await use_case.create(
        event_id=request.event_id,
        lines=[RegistrationLine(class_id=line.class_id, qty=line.qty) for line in request.lines],
        stall_qty=request.stall_qty,
        rv_qty=request.rv_qty,
        party_email=request.party_email,
        party_phone=request.party_phone,
    )
    return RegistrationResponse.model_validate(registration)


@router.get('')
@Logger.io(truncate_content=True)
async def list_registrations(
    event_id: str = Query(...),
    registration_status: Optional[str] = Query(default=None, alias='status'),
    limit: Optional[int] = Query(default=None),
    use_case: ListRegistrationsUseCase = Depends(ListRegistrationsUseCase.depends),
) -> RegistrationListResponse:
    registrations = await use_case.list_by_event(
        event_id=event_id, status=registration_status, limit=limit
    )
    return RegistrationListResponse(
        items=[RegistrationResponse.model_validate(item) for item in registrations],
        count=len(registrations),
    )


@router.post('/cleanup-expired-holds')
@Logger.io
async def cleanup_expired_holds(
    limit: Optional[int] = Query(default=None),
    use_case: ExpireRegistrationHoldsUseCase = Depends(ExpireRegistrationHoldsUseCase.depends),
) -> ExpireSweepResponse:
    return ExpireSweepResponse.model_validate(await use_case.sweep(limit=limit))


@router.get('/{registration_id}')
@Logger.io
async def get_registration(
    registration_id: str,
    use_case: GetRegistrationUseCase = Depends(GetRegistrationUseCase.depends),
) -> RegistrationResponse:
    return RegistrationResponse.model_validate(
        await use_case.get(registration_id=registration_id)
    )


@router.patch('/{registration_id}')
@Logger.io
async def update_registration(
    registration_id: str,
    request: RegistrationUpdateRequest,
    use_case: UpdateRegistrationUseCase = Depends(UpdateRegistrationUseCase.depends),
) -> RegistrationResponse:
    lines = (
        [RegistrationLine(class_id=line.class_id, qty=line.qty) for line in request.lines]
        if request.lines is not None
        else None
    )
    registration = await use_case.update(
        registration_id=registration_id,
        lines=lines,
        stall_qty=request.stall_qty,
        rv_qty=request.rv_qty,
        party_email=request.party_email,
        party_phone=request.party_phone,
    )
    return RegistrationResponse.model_validate(registration)


@router.get('/{registration_id}/holds', response_model=List[HoldResponse])
@Logger.io(truncate_content=True)
async def list_registration_holds(
    registration_id: str,
    limit: int = Query(default=200, ge=1, le=500),
    use_case: GetRegistrationUseCase = Depends(GetRegistrationUseCase.depends),
):
    holds = await use_case.list_holds(registration_id=registration_id, limit=limit)
    return [HoldResponse.model_validate(hold) for hold in holds]


@router.post('/{registration_id}/checkout')
@Logger.io
async def checkout_registration(
    registration_id: str,
    idempotency_key: Optional[str] = Header(default=None, alias='Idempotency-Key'),
    use_case: CheckoutRegistrationUseCase = Depends(CheckoutRegistrationUseCase.depends),
) -> CheckoutResponse:
    result = await use_case.checkout(
        registration_id=registration_id, idempotency_key=idempotency_key
    )
    return CheckoutResponse.model_validate(result)


@router.post('/{registration_id}/assign-stalls')
@Logger.io
async def assign_stalls(
    registration_id: str,
    request: AssignStallsRequest,
    use_case: AssignResourcesUseCase = Depends(AssignResourcesUseCase.depends),
) -> ResourceHoldsResponse:
    result = await use_case.assign_stalls(
        registration_id=registration_id, stall_ids=request.stall_ids
    )
    return _resource_holds_response(result)


@router.post('/{registration_id}/assign-rv-sites')
@Logger.io
async def assign_rv_sites(
    registration_id: str,
    request: AssignRvSitesRequest,
    use_case: AssignResourcesUseCase = Depends(AssignResourcesUseCase.depends),
) -> ResourceHoldsResponse:
    result = await use_case.assign_rv_sites(
        registration_id=registration_id, rv_site_ids=request.rv_site_ids
    )
    return _resource_holds_response(result)


@router.post('/{registration_id}/assign-resources')
@Logger.io
async def assign_resources(
    registration_id: str,
    request: AssignResourcesRequest,
    use_case: AssignResourcesUseCase = Depends(AssignResourcesUseCase.depends),
) -> AssignmentResponse:
    result = await use_case.assign_resources(
        registration_id=registration_id,
        item_type=request.item_type,
        resource_ids=request.resource_ids,
    )
    return _assignment_response(result)


@router.post('/{registration_id}/assign-classes')
@Logger.io
async def assign_classes(
    registration_id: str,
    request: AssignClassesRequest,
    use_case: AssignResourcesUseCase = Depends(AssignResourcesUseCase.depends),
) -> AssignmentResponse:
    result = await use_case.assign_class_entries(
        registration_id=registration_id, event_line_ids=request.event_line_ids
    )
    return _assignment_response(result)


@router.post('/{registration_id}/cancel')
@Logger.io
async def cancel_registration(
    registration_id: str,
    use_case: CancelRegistrationUseCase = Depends(CancelRegistrationUseCase.depends),
) -> RegistrationResponse:
    return RegistrationResponse.model_validate(
        await use_case.cancel(registration_id=registration_id)
    )


@router.post('/{registration_id}/cancel-refund')
@Logger.io
async def cancel_and_refund_registration(
    registration_id: str,
    use_case: CancelRegistrationUseCase = Depends(CancelRegistrationUseCase.depends),
) -> RegistrationResponse:
    return RegistrationResponse.model_validate(
        await use_case.cancel_and_refund(registration_id=registration_id)
    )


@router.get('/{registration_id}/checkin-readiness')
@Logger.io
async def get_check_in_readiness(
    registration_id: str,
    use_case: GetCheckInReadinessUseCase = Depends(GetCheckInReadinessUseCase.depends),
) -> CheckInStatusResponse:
    return CheckInStatusResponse.model_validate(
        await use_case.evaluate(registration_id=registration_id)
    )


@router.post('/{registration_id}/checkin-status')
@Logger.io
async def recompute_check_in_status(
    registration_id: str,
    idempotency_key: Optional[str] = Header(default=None, alias='Idempotency-Key'),
    use_case: CheckInRegistrationUseCase = Depends(CheckInRegistrationUseCase.depends),
) -> RegistrationResponse:
    registration = await use_case.recompute_status(
        registration_id=registration_id, idempotency_key=idempotency_key
    )
    return RegistrationResponse.model_validate(registration)


@router.post('/{registration_id}/checkin')
@Logger.io
async def check_in_registration(
    registration_id: str,
    request: Optional[CheckInRequest] = None,
    idempotency_key: Optional[str] = Header(default=None, alias='Idempotency-Key'),
    use_case: CheckInRegistrationUseCase = Depends(CheckInRegistrationUseCase.depends),
) -> RegistrationResponse:
    registration = await use_case.check_in(
        registration_id=registration_id,
        idempotency_key=idempotency_key,
        actor=request.actor if request else None,
    )
    return RegistrationResponse.model_validate(registration)


@router.post('/{registration_id}/ticket')
@Logger.io
async def issue_ticket(
    registration_id: str,
    request: Optional[TicketIssueRequest] = None,
    idempotency_key: Optional[str] = Header(default=None, alias='Idempotency-Key'),
    use_case: IssueTicketUseCase = Depends(IssueTicketUseCase.depends),
) -> TicketResponse:
    ticket = await use_case.issue(
        registration_id=registration_id,
        idempotency_key=idempotency_key,
        ticket_type=request.ticket_type if request else None,
        actor=request.actor if request else None,
    )
    return TicketResponse.model_validate(ticket)


@router.post('/{registration_id}/resend-confirmation')
@Logger.io
async def resend_confirmation(
    registration_id: str,
    channel: Optional[str] = Query(default=None),
    use_case: ResendConfirmationUseCase = Depends(ResendConfirmationUseCase.depends),
) -> ConfirmationResendResponse:
    return _resend_response(
        await use_case.resend(registration_id=registration_id, channel=channel)
    )
