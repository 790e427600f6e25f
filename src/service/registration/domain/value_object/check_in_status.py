from datetime import datetime
from typing import Any, Optional

import attrs


@attrs.frozen
class CheckInAction:
    type: str
    label: str
    target: str

    def to_dict(self) -> dict[str, Any]:
        return {'type': self.type, 'label': self.label, 'target': self.target}


@attrs.frozen
class CheckInBlocker:
    code: str
    message: str
    reason: str
    action: Optional[CheckInAction] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {'code': self.code, 'message': self.message, 'reason': self.reason}
        if self.action is not None:
            data['action'] = self.action.to_dict()
        return data


@attrs.frozen
class CheckInStatus:
    """Readiness snapshot cached on the registration.

    `version` is carried forward from the previous snapshot untouched; nothing bumps it.
    """

    ready: bool
    blockers: tuple[CheckInBlocker, ...]
    last_evaluated_at: datetime
    version: int = 0

    @property
    def blocker_codes(self) -> list[str]:
        return [blocker.code for blocker in self.blockers]

    def to_dict(self) -> dict[str, Any]:
        return {
            'ready': self.ready,
            'blockers': [blocker.to_dict() for blocker in self.blockers],
            'last_evaluated_at': self.last_evaluated_at.isoformat(),
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'CheckInStatus':
        blockers = []
        for raw in data.get('blockers', []):
            action = raw.get('action')
            blockers.append(
                CheckInBlocker(
                    code=raw['code'],
                    message=raw.get('message', ''),
                    reason=raw.get('reason', ''),
                    action=CheckInAction(**action) if action else None,
                )
            )
        return cls(
            ready=bool(data.get('ready', False)),
            blockers=tuple(blockers),
            last_evaluated_at=datetime.fromisoformat(data['last_evaluated_at']),
            version=int(data.get('version', 0)),
        )
