from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RegistrationLineSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    class_id: str
    qty: int


class RegistrationCreateRequest(BaseModel):
    event_id: str
    lines: List[RegistrationLineSchema] = []
    stall_qty: int = 0
    rv_qty: int = 0
    party_email: Optional[str] = None
    party_phone: Optional[str] = None

    class Config:
        json_schema_extra = {
            'example': {
                'event_id': 'evt_spring_show',
                'lines': [{'class_id': 'cls_halter_open', 'qty': 2}],
                'stall_qty': 2,
                'rv_qty': 1,
                'party_email': 'rider@example.com',
                'party_phone': '+15555550100',
            }
        }


class RegistrationUpdateRequest(BaseModel):
    """Draft edit; omitted fields keep their stored value"""

    lines: Optional[List[RegistrationLineSchema]] = None
    stall_qty: Optional[int] = None
    rv_qty: Optional[int] = None
    party_email: Optional[str] = None
    party_phone: Optional[str] = None

    class Config:
        json_schema_extra = {
            'example': {
                'lines': [{'class_id': 'cls_halter_open', 'qty': 1}],
                'stall_qty': 1,
            }
        }


class FeeLineSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    label: str
    unit_amount: int
    qty: int
    amount: int


class CheckInActionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    label: str
    target: str


class CheckInBlockerSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    message: str
    reason: str
    action: Optional[CheckInActionSchema] = None


class CheckInStatusResponse(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            'example': {
                'ready': False,
                'blockers': [
                    {
                        'code': 'stalls_unassigned',
                        'message': 'Stalls unassigned (1/2)',
                        'reason': 'Stall assignment required',
                        'action': {
                            'type': 'assign_stalls',
                            'label': 'Assign Stalls',
                            'target': '01234567-89ab-7def-0123-456789abcdef',
                        },
                    }
                ],
                'last_evaluated_at': '2025-01-10T10:30:00Z',
                'version': 0,
            }
        },
    )

    ready: bool
    blockers: List[CheckInBlockerSchema]
    last_evaluated_at: datetime
    version: int


class RegistrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    event_id: str
    status: str
    payment_status: Optional[str] = None
    stall_qty: int
    rv_qty: int
    lines: List[RegistrationLineSchema]
    fees: List[FeeLineSchema]
    total_amount: int
    currency: Optional[str] = None
    payment_intent_id: Optional[str] = None
    submitted_at: Optional[datetime] = None
    hold_expires_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_id: Optional[str] = None
    check_in_status: Optional[CheckInStatusResponse] = None
    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class HoldResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_type: str
    owner_id: str
    scope_type: str
    scope_id: str
    item_type: str
    resource_id: Optional[str] = None
    qty: int
    state: str
    held_at: datetime
    confirmed_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    release_reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    metadata: dict[str, Any] = {}


class CheckoutResponse(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            'example': {
                'registration_id': '01234567-89ab-7def-0123-456789abcdef',
                'payment_intent_id': 'pi_3Q0abc',
                'client_secret': 'pi_3Q0abc_secret_xyz',
                'hold_expires_at': '2025-01-10T10:45:00Z',
                'replayed': False,
            }
        },
    )

    registration_id: str
    payment_intent_id: str
    client_secret: str
    hold_expires_at: Optional[datetime] = None
    replayed: bool = False


class AssignStallsRequest(BaseModel):
    # Shape is validated by the engine so callers get invalid_stall_ids, not a 422
    stall_ids: Any = None

    class Config:
        json_schema_extra = {'example': {'stall_ids': ['stall_a1', 'stall_a2']}}


class AssignRvSitesRequest(BaseModel):
    rv_site_ids: Any = None

    class Config:
        json_schema_extra = {'example': {'rv_site_ids': ['rv_12']}}


class AssignResourcesRequest(BaseModel):
    item_type: str
    resource_ids: Any = None

    class Config:
        json_schema_extra = {'example': {'item_type': 'stall', 'resource_ids': ['stall_a1']}}


class AssignClassesRequest(BaseModel):
    event_line_ids: Any = None

    class Config:
        json_schema_extra = {'example': {'event_line_ids': ['line_halter', 'line_halter']}}


class AssignmentResponse(BaseModel):
    holds: List[HoldResponse]
    resource_holds: List[HoldResponse]
    released_block_holds: List[HoldResponse]


class ResourceHoldsResponse(BaseModel):
    """Typed stall / RV assignment: per-resource holds only"""

    holds: List[HoldResponse]
    count: int


class CheckInRequest(BaseModel):
    actor: Optional[str] = None

    class Config:
        json_schema_extra = {'example': {'actor': 'gate-staff-3'}}


class ExpireSweepResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    scanned_count: int
    expired_count: int
    expired_registration_ids: List[str] = Field(default_factory=list)


class RegistrationListResponse(BaseModel):
    items: List[RegistrationResponse]
    count: int


class TicketIssueRequest(BaseModel):
    ticket_type: Optional[str] = None
    actor: Optional[str] = None

    class Config:
        json_schema_extra = {'example': {'ticket_type': 'admission', 'actor': 'gate-1'}}


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    event_id: str
    registration_id: str
    ticket_type: str
    status: str
    qr_text: str
    issued_at: Optional[datetime] = None
    issued_by: Optional[str] = None
    used_at: Optional[datetime] = None


class NotificationMessageSchema(BaseModel):
    """Delivery fields only; recipients and template content stay private"""

    model_config = ConfigDict(from_attributes=True)

    status: str
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None


class ResendAttemptSchema(BaseModel):
    email: bool
    sms: bool


class ConfirmationResendResponse(BaseModel):
    registration_id: str
    rate_limited: bool
    attempted: ResendAttemptSchema
    email: Optional[NotificationMessageSchema] = None
    sms: Optional[NotificationMessageSchema] = None
