from abc import ABC, abstractmethod
from typing import Any, Optional

from src.service.registration.app.dto.notification_dto import NotificationMessage


class INotificationDispatcher(ABC):
    @abstractmethod
    async def enqueue_email(
        self, *, to: str, template_key: str, template_vars: dict[str, Any]
    ) -> str:
        """
        Returns:
            Stored message id; callers record it to stay idempotent
        """
        pass

    @abstractmethod
    async def enqueue_sms(self, *, to: str, template_key: str, template_vars: dict[str, Any]) -> str:
        pass

    @abstractmethod
    async def get_message(self, *, message_id: str) -> Optional[NotificationMessage]:
        pass

    @abstractmethod
    async def retry_message(self, *, message_id: str) -> NotificationMessage:
        """Put a failed message back on the outbox under the same id"""
        pass
