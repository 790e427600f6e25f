from enum import StrEnum


class TicketType(StrEnum):
    ADMISSION = 'admission'
    STAFF = 'staff'
    VENDOR = 'vendor'
    VIP = 'vip'


class TicketStatus(StrEnum):
    VALID = 'valid'
    USED = 'used'
    CANCELLED = 'cancelled'

