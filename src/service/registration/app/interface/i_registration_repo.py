from abc import ABC, abstractmethod
from typing import Optional

from src.service.registration.domain.entity.registration_entity import Registration
from src.service.registration.domain.enum import RegistrationStatus


class IRegistrationRepo(ABC):
    @abstractmethod
    async def get_by_id(self, *, registration_id: str) -> Optional[Registration]:
        pass

    @abstractmethod
    async def create(self, *, registration: Registration) -> Registration:
        pass

    @abstractmethod
    async def update(self, *, registration: Registration) -> Registration:
        """
        Unconditional write; bumps the row version

        Returns:
            The stored registration carrying its new version
        """
        pass

    @abstractmethod
    async def update_if_version(
        self, *, registration: Registration, expected_version: int
    ) -> Optional[Registration]:
        """
        Compare-and-swap write on the row version

        Returns:
            The stored registration, or None when another writer got there first
        """
        pass

    @abstractmethod
    async def list_by_status(
        self, *, status: RegistrationStatus, limit: int
    ) -> list[Registration]:
        """Oldest submissions first so the sweeper drains the backlog in order"""
        pass

    @abstractmethod
    async def list_by_event(
        self, *, event_id: str, status: Optional[RegistrationStatus] = None, limit: int
    ) -> list[Registration]:
        """Newest first"""
        pass
