from typing import Optional

import attrs

from src.service.registration.domain.enum import EventStatus


@attrs.define
class EventLine:
    """Event-scoped class offering with its own fee and capacity counter"""

    id: str
    event_id: str
    class_id: str
    name: str = ''
    fee_amount: Optional[int] = None
    capacity: Optional[int] = None


@attrs.define
class Event:
    id: str
    name: str
    status: EventStatus = attrs.field(converter=EventStatus)
    currency: str = 'usd'
    rv_enabled: bool = False
    rv_unit_amount: Optional[int] = None
    stall_enabled: bool = False
    stall_unit_amount: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.status is EventStatus.OPEN


@attrs.define
class Resource:
    """Physical resource (stall, RV site) tagged with the events it serves"""

    id: str
    resource_type: str
    name: str = ''
    tags: list[str] = attrs.field(factory=list)

    def belongs_to_event(self, event_id: str) -> bool:
        return f'event:{event_id}' in self.tags
