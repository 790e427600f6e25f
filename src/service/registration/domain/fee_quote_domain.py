"""
Fee Quote Domain

Authoritative server-side pricing for a checkout. Client-sent amounts are never trusted.
"""

from collections.abc import Sequence

import attrs

from src.platform.exception.exceptions import StateConflictError, ValidationError
from src.service.registration.domain.entity.event_entity import Event, EventLine
from src.service.registration.domain.entity.registration_entity import Registration
from src.service.registration.domain.enum import ErrorCode
from src.service.registration.domain.value_object import FeeLine


@attrs.frozen
class ResolvedClassLine:
    event_line: EventLine
    qty: int


@attrs.frozen
class FeeQuote:
    fees: tuple[FeeLine, ...]
    class_lines: tuple[ResolvedClassLine, ...]
    currency: str

    @property
    def total_amount(self) -> int:
        return sum(fee.amount for fee in self.fees)


def quote_registration_fees(
    *, event: Event, event_lines: Sequence[EventLine], registration: Registration
) -> FeeQuote:
    lines_by_class = {line.class_id: line for line in event_lines}
    fees: list[FeeLine] = []
    resolved: list[ResolvedClassLine] = []

    for requested in registration.lines:
        event_line = lines_by_class.get(requested.class_id)
        if event_line is None:
            raise ValidationError(
                f'Class {requested.class_id} is not offered by event {event.id}',
                code=ErrorCode.CLASS_NOT_OFFERED,
            )
        if event_line.fee_amount is None:
            raise StateConflictError(
                f'Class {requested.class_id} has no fee configured',
                code=ErrorCode.CLASS_PRICING_MISSING,
            )
        fees.append(
            FeeLine(
                code=f'class:{requested.class_id}',
                label=event_line.name or requested.class_id,
                unit_amount=event_line.fee_amount,
                qty=requested.qty,
            )
        )
        resolved.append(ResolvedClassLine(event_line=event_line, qty=requested.qty))

    if registration.rv_qty > 0:
        if not event.rv_enabled:
            raise ValidationError(
                'RV sites are not offered for this event', code=ErrorCode.RV_NOT_ENABLED
            )
        if event.rv_unit_amount is None:
            raise StateConflictError(
                'RV site pricing is not configured', code=ErrorCode.RV_PRICING_MISSING
            )
        fees.append(
            FeeLine(code='rv', label='RV site', unit_amount=event.rv_unit_amount, qty=registration.rv_qty)
        )

    if registration.stall_qty > 0:
        if not event.stall_enabled:
            raise ValidationError(
                'Stalls are not offered for this event', code=ErrorCode.STALL_NOT_ENABLED
            )
        if event.stall_unit_amount is None:
            raise StateConflictError(
                'Stall pricing is not configured', code=ErrorCode.STALL_PRICING_MISSING
            )
        fees.append(
            FeeLine(
                code='stall', label='Stall', unit_amount=event.stall_unit_amount, qty=registration.stall_qty
            )
        )

    return FeeQuote(fees=tuple(fees), class_lines=tuple(resolved), currency=event.currency)
