from enum import StrEnum


class NotificationChannel(StrEnum):
    EMAIL = 'email'
    SMS = 'sms'
    BOTH = 'both'
