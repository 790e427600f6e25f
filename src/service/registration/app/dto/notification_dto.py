from datetime import datetime
from typing import Optional

import attrs


MESSAGE_STATUS_QUEUED = 'queued'
MESSAGE_STATUS_SENT = 'sent'
MESSAGE_STATUS_FAILED = 'failed'


@attrs.frozen
class NotificationMessage:
    """Outbox row as seen by the registration service"""

    id: str
    channel: str
    status: str
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == MESSAGE_STATUS_FAILED


@attrs.frozen
class ConfirmationResendResult:
    registration_id: str
    rate_limited: bool
    attempted_email: bool = False
    attempted_sms: bool = False
    email: Optional[NotificationMessage] = None
    sms: Optional[NotificationMessage] = None
