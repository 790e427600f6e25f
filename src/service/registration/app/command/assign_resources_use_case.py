from typing import Any, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.exception.exceptions import ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.dto import AssignmentResult
from src.service.registration.app.interface import IResourceValidator
from src.service.registration.app.service.resource_assignment_service import (
    CLASS_ENTRY_ASSIGNMENT,
    RV_ASSIGNMENT,
    STALL_ASSIGNMENT,
    ResourceAssignmentService,
)
from src.service.registration.domain.enum import ErrorCode, ItemType


class AssignResourcesUseCase:
    """Typed entry points onto the block → granular assignment algorithm"""

    def __init__(
        self,
        *,
        resource_assignment_service: ResourceAssignmentService,
        stall_validator: IResourceValidator,
        rv_validator: IResourceValidator,
        event_line_validator: IResourceValidator,
    ) -> None:
        self.resource_assignment_service = resource_assignment_service
        self.stall_validator = stall_validator
        self.rv_validator = rv_validator
        self.event_line_validator = event_line_validator

    @classmethod
    @inject
    def depends(
        cls,
        resource_assignment_service: ResourceAssignmentService = Depends(
            Provide[Container.resource_assignment_service]
        ),
        stall_validator: IResourceValidator = Depends(Provide[Container.stall_validator]),
        rv_validator: IResourceValidator = Depends(Provide[Container.rv_validator]),
        event_line_validator: IResourceValidator = Depends(
            Provide[Container.event_line_validator]
        ),
    ) -> Self:
        return cls(
            resource_assignment_service=resource_assignment_service,
            stall_validator=stall_validator,
            rv_validator=rv_validator,
            event_line_validator=event_line_validator,
        )

    @Logger.io
    async def assign_stalls(self, *, registration_id: str, stall_ids: Any) -> AssignmentResult:
        return await self.resource_assignment_service.assign(
            registration_id=registration_id,
            resource_ids=stall_ids,
            policy=STALL_ASSIGNMENT,
            validator=self.stall_validator,
        )

    @Logger.io
    async def assign_rv_sites(self, *, registration_id: str, rv_site_ids: Any) -> AssignmentResult:
        return await self.resource_assignment_service.assign(
            registration_id=registration_id,
            resource_ids=rv_site_ids,
            policy=RV_ASSIGNMENT,
            validator=self.rv_validator,
        )

    @Logger.io
    async def assign_resources(
        self, *, registration_id: str, item_type: str, resource_ids: Any
    ) -> AssignmentResult:
        """Generic physical assignment; only stall and rv are assignable here"""
        if item_type == ItemType.STALL:
            return await self.assign_stalls(registration_id=registration_id, stall_ids=resource_ids)
        if item_type == ItemType.RV:
            return await self.assign_rv_sites(
                registration_id=registration_id, rv_site_ids=resource_ids
            )
        raise ValidationError(
            f'item_type must be one of stall, rv; got {item_type!r}',
            code=ErrorCode.INVALID_ITEM_TYPE,
        )

    @Logger.io
    async def assign_class_entries(
        self, *, registration_id: str, event_line_ids: Any
    ) -> AssignmentResult:
        # One id per entry: a line requested twice yields two granular holds
        return await self.resource_assignment_service.assign(
            registration_id=registration_id,
            resource_ids=event_line_ids,
            policy=CLASS_ENTRY_ASSIGNMENT,
            validator=self.event_line_validator,
        )
