from datetime import datetime, timezone
from typing import Any, Optional

import attrs
from uuid_utils import uuid7

from src.platform.exception.exceptions import StateConflictError
from src.platform.logging.loguru_io import Logger
from src.service.registration.domain.enum import (
    ACTIVE_HOLD_STATES,
    ErrorCode,
    HoldState,
    ItemType,
    ReleaseReason,
)
from src.service.registration.domain.value_object import HoldOwner, HoldScope


METADATA_EVENT_LINE_ID = 'event_line_id'


def _positive_qty(instance: Any, attribute: attrs.Attribute, value: int) -> None:
    if value < 1:
        raise ValueError(f'{attribute.name} must be >= 1, got {value}')


@attrs.define
class ReservationHold:
    """A claim on capacity.

    `resource_id is None` marks a block hold covering `qty` unassigned units;
    otherwise the hold is pinned to one physical resource (or class line).
    """

    id: str
    owner_type: str
    owner_id: str
    scope_type: str
    scope_id: str
    item_type: ItemType = attrs.field(converter=ItemType)
    qty: int = attrs.field(validator=_positive_qty)
    held_at: datetime
    resource_id: Optional[str] = None
    state: HoldState = attrs.field(default=HoldState.HELD, converter=HoldState)
    confirmed_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    release_reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    metadata: dict[str, Any] = attrs.field(factory=dict)

    @property
    def owner(self) -> HoldOwner:
        return HoldOwner(type=self.owner_type, id=self.owner_id)

    @property
    def scope(self) -> HoldScope:
        return HoldScope(type=self.scope_type, id=self.scope_id)

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_HOLD_STATES

    @property
    def is_block(self) -> bool:
        return self.resource_id is None

    @property
    def event_line_id(self) -> Optional[str]:
        # Granular class entries are pinned to the line itself
        if self.item_type is not ItemType.CLASS_ENTRY:
            return None
        if self.resource_id is not None:
            return self.resource_id
        return self.metadata.get(METADATA_EVENT_LINE_ID)

    @classmethod
    def create_block(
        cls,
        *,
        owner: HoldOwner,
        scope: HoldScope,
        item_type: ItemType,
        qty: int,
        line_id: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> 'ReservationHold':
        hold_metadata = dict(metadata or {})
        if line_id is not None:
            hold_metadata[METADATA_EVENT_LINE_ID] = line_id
        return cls(
            id=str(uuid7()),
            owner_type=owner.type,
            owner_id=owner.id,
            scope_type=scope.type,
            scope_id=scope.id,
            item_type=item_type,
            qty=qty,
            held_at=datetime.now(timezone.utc),
            expires_at=expires_at,
            metadata=hold_metadata,
        )

    def split_for_resource(self, *, resource_id: str) -> 'ReservationHold':
        """Granular hold carved from this block: inherits state, held_at and expiry."""
        return attrs.evolve(
            self,
            id=str(uuid7()),
            qty=1,
            resource_id=resource_id,
            released_at=None,
            release_reason=None,
            metadata=dict(self.metadata),
        )

    @Logger.io
    def confirm(self, *, now: Optional[datetime] = None) -> 'ReservationHold':
        if self.state is not HoldState.HELD:
            raise StateConflictError(
                f'Hold {self.id} cannot be confirmed from {self.state}',
                code=ErrorCode.INVALID_HOLD_STATE,
            )
        return attrs.evolve(
            self,
            state=HoldState.CONFIRMED,
            confirmed_at=now or datetime.now(timezone.utc),
        )

    @Logger.io
    def release(self, *, reason: str, now: Optional[datetime] = None) -> 'ReservationHold':
        if not self.is_active:
            raise StateConflictError(
                f'Hold {self.id} is already {self.state}',
                code=ErrorCode.INVALID_HOLD_STATE,
            )
        terminal = HoldState.CANCELLED if reason == ReleaseReason.EXPIRED else HoldState.RELEASED
        return attrs.evolve(
            self,
            state=terminal,
            released_at=now or datetime.now(timezone.utc),
            release_reason=str(reason),
        )
