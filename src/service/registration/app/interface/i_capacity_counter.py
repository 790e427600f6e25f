from abc import ABC, abstractmethod
from typing import Optional

from src.service.registration.domain.enum import CapacityKind


class ICapacityCounter(ABC):
    """
    Per-event atomic capacity counters

    Reserve is conditional at the store (reserve-or-fail); this is the only
    mutual-exclusion point between concurrent registrants.
    """

    @abstractmethod
    async def reserve(
        self, *, event_id: str, kind: CapacityKind, qty: int = 1, line_id: Optional[str] = None
    ) -> bool:
        """
        Returns:
            True if `qty` units were reserved, False if capacity is exhausted
        """
        pass

    @abstractmethod
    async def release(
        self, *, event_id: str, kind: CapacityKind, qty: int = 1, line_id: Optional[str] = None
    ) -> None:
        """Best-effort decrement, floored at zero; over-release is not an error"""
        pass
