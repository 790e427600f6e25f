from enum import StrEnum


class RegistrationStatus(StrEnum):
    DRAFT = 'draft'
    SUBMITTED = 'submitted'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'


class PaymentStatus(StrEnum):
    PENDING = 'pending'
    PAID = 'paid'
    FAILED = 'failed'
    REFUNDED = 'refunded'


class EventStatus(StrEnum):
    DRAFT = 'draft'
    OPEN = 'open'
    CLOSED = 'closed'
