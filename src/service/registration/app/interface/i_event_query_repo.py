from abc import ABC, abstractmethod
from typing import Optional

from src.service.registration.domain.entity.event_entity import Event, EventLine, Resource


class IEventQueryRepo(ABC):
    @abstractmethod
    async def get_by_id(self, *, event_id: str) -> Optional[Event]:
        pass

    @abstractmethod
    async def list_event_lines(self, *, event_id: str) -> list[EventLine]:
        pass

    @abstractmethod
    async def list_resources(self, *, resource_ids: list[str]) -> list[Resource]:
        """Look up physical resources by id; unknown ids are simply absent"""
        pass
