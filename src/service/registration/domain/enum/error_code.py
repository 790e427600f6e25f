from enum import StrEnum


class ErrorCode(StrEnum):
    # Input validation
    INVALID_QUANTITY = 'invalid_quantity'
    DUPLICATE_CLASS_LINES = 'duplicate_class_lines'
    INVALID_ITEM_TYPE = 'invalid_item_type'
    QTY_MISMATCH = 'qty_mismatch'
    MISSING_IDEMPOTENCY_KEY = 'missing_idempotency_key'
    INVALID_TICKET_TYPE = 'invalid_ticket_type'
    INVALID_CHANNEL = 'invalid_channel'
    INVALID_STATUS = 'invalid_status'

    # Lookups
    REGISTRATION_NOT_FOUND = 'registration_not_found'
    EVENT_NOT_FOUND = 'event_not_found'
    EVENT_LINE_NOT_FOUND = 'event_line_not_found'
    RESOURCE_NOT_FOUND = 'resource_not_found'
    INVALID_RESOURCE_TYPE = 'invalid_resource_type'
    RESOURCE_NOT_FOR_EVENT = 'resource_not_for_event'

    # State
    INVALID_STATE = 'invalid_state'
    INVALID_REGISTRATION_STATE = 'invalid_registration_state'
    INVALID_HOLD_STATE = 'invalid_hold_state'
    HOLD_EXPIRED = 'hold_expired'
    EVENT_NOT_OPEN = 'event_not_open'
    MISSING_PAYMENT_INTENT = 'missing_payment_intent'
    CHECKIN_BLOCKED = 'checkin_blocked'
    CONCURRENT_UPDATE = 'concurrent_update'

    # Ticket issuance
    PARTY_MISSING = 'party_missing'
    PAYMENT_UNPAID = 'payment_unpaid'
    NOT_CHECKED_IN = 'not_checked_in'

    # Event add-ons
    RV_NOT_ENABLED = 'rv_not_enabled'
    RV_PRICING_MISSING = 'rv_pricing_missing'
    STALL_NOT_ENABLED = 'stall_not_enabled'
    STALL_PRICING_MISSING = 'stall_pricing_missing'
    CLASS_NOT_OFFERED = 'class_not_offered'
    CLASS_PRICING_MISSING = 'class_pricing_missing'

    # Capacity
    CAPACITY_FULL = 'capacity_full'
    RV_CAPACITY_FULL = 'rv_capacity_full'
    STALL_CAPACITY_FULL = 'stall_capacity_full'
    CLASS_CAPACITY_FULL = 'class_capacity_full'

    # Resource conflicts
    STALL_ALREADY_ASSIGNED = 'stall_already_assigned'
    RV_SITE_ALREADY_ASSIGNED = 'rv_site_already_assigned'
    RESOURCE_ALREADY_ASSIGNED = 'resource_already_assigned'

    # Consistency checks
    BLOCK_HOLD_NOT_FOUND = 'block_hold_not_found'
    BLOCK_HOLD_MISSING = 'block_hold_missing'

    # Payment webhook
    MISSING_SIGNATURE = 'missing_signature'
    MISSING_BODY = 'missing_body'
    INVALID_SIGNATURE = 'invalid_signature'
