from abc import ABC, abstractmethod
from typing import Optional

from src.service.registration.domain.entity.ticket_entity import Ticket


class ITicketRepo(ABC):
    @abstractmethod
    async def get_by_id(self, *, ticket_id: str) -> Optional[Ticket]:
        pass

    @abstractmethod
    async def create_if_absent(self, *, ticket: Ticket) -> Ticket:
        """
        Insert keyed by the deterministic ticket id

        Returns:
            The stored ticket; an earlier insert under the same id wins
        """
        pass
