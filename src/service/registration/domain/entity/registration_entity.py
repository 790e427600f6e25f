from datetime import datetime, timedelta, timezone
from typing import Optional

import attrs
from uuid_utils import uuid7

from src.platform.exception.exceptions import StateConflictError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.registration.domain.enum import (
    ErrorCode,
    PaymentStatus,
    RegistrationStatus,
)
from src.service.registration.domain.value_object import CheckInStatus, FeeLine


@attrs.frozen
class RegistrationLine:
    class_id: str
    qty: int


# Payment states from which an unpaid submission may still be cancelled
_PRE_PAYMENT_STATES = (None, PaymentStatus.PENDING, PaymentStatus.FAILED)


def _validate_quantities(*, lines: list[RegistrationLine], stall_qty: int, rv_qty: int) -> None:
    if stall_qty < 0 or rv_qty < 0:
        raise ValidationError(
            'stall_qty and rv_qty must be non-negative', code=ErrorCode.INVALID_QUANTITY
        )
    seen: set[str] = set()
    for line in lines:
        if line.qty < 1:
            raise ValidationError(
                f'Class line {line.class_id} qty must be >= 1',
                code=ErrorCode.INVALID_QUANTITY,
            )
        if line.class_id in seen:
            raise ValidationError(
                f'Class {line.class_id} requested more than once',
                code=ErrorCode.DUPLICATE_CLASS_LINES,
            )
        seen.add(line.class_id)


@attrs.define
class Registration:
    id: str
    event_id: str
    status: RegistrationStatus = attrs.field(
        default=RegistrationStatus.DRAFT, converter=RegistrationStatus
    )
    payment_status: Optional[PaymentStatus] = attrs.field(
        default=None, converter=attrs.converters.optional(PaymentStatus)
    )
    stall_qty: int = 0
    rv_qty: int = 0
    lines: list[RegistrationLine] = attrs.field(factory=list)
    party_email: Optional[str] = None
    party_phone: Optional[str] = None

    # Checkout
    fees: list[FeeLine] = attrs.field(factory=list)
    total_amount: int = 0
    currency: Optional[str] = None
    payment_intent_id: Optional[str] = None
    payment_intent_client_secret: Optional[str] = None
    checkout_idempotency_key: Optional[str] = None
    submitted_at: Optional[datetime] = None
    hold_expires_at: Optional[datetime] = None

    # Settlement
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_id: Optional[str] = None
    confirmation_message_id: Optional[str] = None
    confirmation_sms_message_id: Optional[str] = None
    confirmation_resend_count: int = 0
    confirmation_resent_at: Optional[datetime] = None

    # Check-in
    check_in_status: Optional[CheckInStatus] = None
    check_in_status_idempotency_key: Optional[str] = None
    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[str] = None
    check_in_idempotency_key: Optional[str] = None

    version: int = 0  # row version, bumped by the repository on every write
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def total_class_qty(self) -> int:
        return sum(line.qty for line in self.lines)

    @property
    def has_party(self) -> bool:
        return bool(self.party_email or self.party_phone)

    @property
    def has_live_payment_intent(self) -> bool:
        return bool(self.payment_intent_id and self.payment_intent_client_secret)

    @property
    def is_paid_and_confirmed(self) -> bool:
        return (
            self.status is RegistrationStatus.CONFIRMED
            and self.payment_status is PaymentStatus.PAID
        )

    def hold_expired(self, *, now: datetime) -> bool:
        # Expires strictly after the deadline; equal timestamps are still live
        return self.hold_expires_at is not None and self.hold_expires_at < now

    @classmethod
    @Logger.io
    def create(
        cls,
        *,
        event_id: str,
        lines: list[RegistrationLine],
        stall_qty: int = 0,
        rv_qty: int = 0,
        party_email: Optional[str] = None,
        party_phone: Optional[str] = None,
    ) -> 'Registration':
        _validate_quantities(lines=lines, stall_qty=stall_qty, rv_qty=rv_qty)
        now = datetime.now(timezone.utc)
        return cls(
            id=str(uuid7()),
            event_id=event_id,
            stall_qty=stall_qty,
            rv_qty=rv_qty,
            lines=list(lines),
            party_email=party_email,
            party_phone=party_phone,
            created_at=now,
            updated_at=now,
        )

    @Logger.io
    def revise(
        self,
        *,
        lines: Optional[list[RegistrationLine]] = None,
        stall_qty: Optional[int] = None,
        rv_qty: Optional[int] = None,
        party_email: Optional[str] = None,
        party_phone: Optional[str] = None,
        now: datetime,
    ) -> 'Registration':
        """Edit a draft; omitted fields keep their value. Submitted registrations hold capacity."""
        if self.status is not RegistrationStatus.DRAFT:
            raise StateConflictError(
                f'Registration is {self.status}; only drafts can be edited',
                code=ErrorCode.INVALID_REGISTRATION_STATE,
            )
        revised_lines = list(lines) if lines is not None else list(self.lines)
        revised_stall_qty = self.stall_qty if stall_qty is None else stall_qty
        revised_rv_qty = self.rv_qty if rv_qty is None else rv_qty
        _validate_quantities(
            lines=revised_lines, stall_qty=revised_stall_qty, rv_qty=revised_rv_qty
        )
        return attrs.evolve(
            self,
            lines=revised_lines,
            stall_qty=revised_stall_qty,
            rv_qty=revised_rv_qty,
            party_email=self.party_email if party_email is None else party_email,
            party_phone=self.party_phone if party_phone is None else party_phone,
            updated_at=now,
        )

    def submit(
        self,
        *,
        payment_intent_id: str,
        client_secret: str,
        idempotency_key: str,
        fees: list[FeeLine],
        total_amount: int,
        currency: str,
        hold_ttl: timedelta,
        now: datetime,
    ) -> 'Registration':
        return attrs.evolve(
            self,
            status=RegistrationStatus.SUBMITTED,
            payment_status=PaymentStatus.PENDING,
            payment_intent_id=payment_intent_id,
            payment_intent_client_secret=client_secret,
            checkout_idempotency_key=idempotency_key,
            submitted_at=now,
            hold_expires_at=now + hold_ttl,
            fees=list(fees),
            total_amount=total_amount,
            currency=currency,
            updated_at=now,
        )

    def confirm_payment(
        self, *, payment_intent_id: str, check_in_status: CheckInStatus, now: datetime
    ) -> 'Registration':
        return attrs.evolve(
            self,
            status=RegistrationStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            payment_intent_id=payment_intent_id,
            confirmed_at=now,
            check_in_status=check_in_status,
            updated_at=now,
        )

    def fail_payment(
        self, *, payment_intent_id: str, check_in_status: CheckInStatus, now: datetime
    ) -> 'Registration':
        return attrs.evolve(
            self,
            payment_status=PaymentStatus.FAILED,
            payment_intent_id=payment_intent_id,
            check_in_status=check_in_status,
            updated_at=now,
        )

    @Logger.io
    def cancel(self, *, now: datetime) -> 'Registration':
        """Operator cancel; caller short-circuits when already cancelled."""
        if self.status is RegistrationStatus.SUBMITTED and self.payment_status in _PRE_PAYMENT_STATES:
            return attrs.evolve(
                self,
                status=RegistrationStatus.CANCELLED,
                payment_status=PaymentStatus.FAILED,
                cancelled_at=self.cancelled_at or now,
                updated_at=now,
            )
        if self.is_paid_and_confirmed:
            return attrs.evolve(
                self,
                status=RegistrationStatus.CANCELLED,
                cancelled_at=self.cancelled_at or now,
                updated_at=now,
            )
        raise StateConflictError(
            f'Registration in {self.status}/{self.payment_status} cannot be cancelled',
            code=ErrorCode.INVALID_STATE,
        )

    @Logger.io
    def ensure_refundable(self) -> None:
        if not self.is_paid_and_confirmed:
            raise StateConflictError(
                f'Registration in {self.status}/{self.payment_status} cannot be refunded',
                code=ErrorCode.INVALID_STATE,
            )
        if not self.payment_intent_id:
            raise StateConflictError(
                'Registration has no payment intent to refund',
                code=ErrorCode.MISSING_PAYMENT_INTENT,
            )

    def refund(self, *, refund_id: str, now: datetime) -> 'Registration':
        return attrs.evolve(
            self,
            status=RegistrationStatus.CANCELLED,
            payment_status=PaymentStatus.REFUNDED,
            refund_id=refund_id,
            cancelled_at=self.cancelled_at or now,
            refunded_at=now,
            updated_at=now,
        )

    def expire(self, *, now: datetime) -> 'Registration':
        return attrs.evolve(
            self,
            status=RegistrationStatus.CANCELLED,
            payment_status=PaymentStatus.FAILED,
            payment_intent_client_secret=None,
            cancelled_at=self.cancelled_at or now,
            updated_at=now,
        )

    def record_check_in_status(
        self, *, check_in_status: CheckInStatus, idempotency_key: Optional[str], now: datetime
    ) -> 'Registration':
        return attrs.evolve(
            self,
            check_in_status=check_in_status,
            check_in_status_idempotency_key=idempotency_key,
            updated_at=now,
        )

    def check_in(
        self,
        *,
        check_in_status: CheckInStatus,
        idempotency_key: str,
        checked_in_by: Optional[str],
        now: datetime,
    ) -> 'Registration':
        return attrs.evolve(
            self,
            check_in_status=check_in_status,
            checked_in_at=now,
            checked_in_by=checked_in_by,
            check_in_idempotency_key=idempotency_key,
            updated_at=now,
        )

    def with_confirmation_message_ids(
        self, *, email_message_id: Optional[str], sms_message_id: Optional[str], now: datetime
    ) -> 'Registration':
        return attrs.evolve(
            self,
            confirmation_message_id=email_message_id or self.confirmation_message_id,
            confirmation_sms_message_id=sms_message_id or self.confirmation_sms_message_id,
            updated_at=now,
        )

    def record_confirmation_resend(self, *, now: datetime) -> 'Registration':
        return attrs.evolve(
            self,
            confirmation_resend_count=self.confirmation_resend_count + 1,
            confirmation_resent_at=now,
            updated_at=now,
        )
