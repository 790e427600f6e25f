import attrs


OWNER_TYPE_REGISTRATION = 'registration'
SCOPE_TYPE_EVENT = 'event'


@attrs.frozen
class HoldOwner:
    type: str
    id: str

    @classmethod
    def registration(cls, registration_id: str) -> 'HoldOwner':
        return cls(type=OWNER_TYPE_REGISTRATION, id=registration_id)


@attrs.frozen
class HoldScope:
    type: str
    id: str

    @classmethod
    def event(cls, event_id: str) -> 'HoldScope':
        return cls(type=SCOPE_TYPE_EVENT, id=event_id)
