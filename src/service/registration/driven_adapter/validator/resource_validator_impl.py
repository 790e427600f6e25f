from src.platform.exception.exceptions import NotFoundError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import IEventQueryRepo, IResourceValidator
from src.service.registration.domain.enum import ErrorCode


class PhysicalResourceValidatorImpl(IResourceValidator):
    """Stalls and RV sites: must exist, have the right type and be tagged for the event"""

    def __init__(self, *, event_query_repo: IEventQueryRepo, resource_type: str) -> None:
        self.event_query_repo = event_query_repo
        self.resource_type = resource_type

    @Logger.io
    async def validate(self, *, resource_ids: list[str], event_id: str) -> None:
        resources = {
            resource.id: resource
            for resource in await self.event_query_repo.list_resources(resource_ids=resource_ids)
        }
        for resource_id in resource_ids:
            resource = resources.get(resource_id)
            if resource is None:
                raise NotFoundError(
                    f'{self.resource_type} {resource_id} not found',
                    code=ErrorCode.RESOURCE_NOT_FOUND,
                    details={'resource_id': resource_id},
                )
            if resource.resource_type != self.resource_type:
                raise ValidationError(
                    f'Resource {resource_id} is a {resource.resource_type}, '
                    f'expected {self.resource_type}',
                    code=ErrorCode.INVALID_RESOURCE_TYPE,
                    details={'resource_id': resource_id},
                )
            if not resource.belongs_to_event(event_id):
                raise ValidationError(
                    f'Resource {resource_id} is not available for event {event_id}',
                    code=ErrorCode.RESOURCE_NOT_FOR_EVENT,
                    details={'resource_id': resource_id},
                )


class EventLineValidatorImpl(IResourceValidator):
    """Class entries: every id must be an event line of the registration's event"""

    def __init__(self, *, event_query_repo: IEventQueryRepo) -> None:
        self.event_query_repo = event_query_repo

    @Logger.io
    async def validate(self, *, resource_ids: list[str], event_id: str) -> None:
        known = {line.id for line in await self.event_query_repo.list_event_lines(event_id=event_id)}
        unknown = [line_id for line_id in resource_ids if line_id not in known]
        if unknown:
            raise NotFoundError(
                f'Event lines {unknown} not found on event {event_id}',
                code=ErrorCode.EVENT_LINE_NOT_FOUND,
                details={'event_line_ids': unknown},
            )
