from enum import StrEnum


class HoldState(StrEnum):
    HELD = 'held'
    CONFIRMED = 'confirmed'
    RELEASED = 'released'  # converted, operator cancel, refund
    CANCELLED = 'cancelled'  # TTL expiry


ACTIVE_HOLD_STATES: tuple[HoldState, ...] = (HoldState.HELD, HoldState.CONFIRMED)


class ReleaseReason(StrEnum):
    EXPIRED = 'expired'
    OPERATOR_CANCEL = 'operator_cancel'
    REFUND = 'refund'
    ASSIGNED = 'assigned'
    CHECKOUT_FAILED = 'checkout_failed'
