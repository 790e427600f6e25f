from abc import ABC, abstractmethod


class IResourceValidator(ABC):
    """Confirms requested ids exist, have the expected type and belong to the event"""

    @abstractmethod
    async def validate(self, *, resource_ids: list[str], event_id: str) -> None:
        """
        Raises:
            NotFoundError / ValidationError: propagated unchanged to the caller
        """
        pass
