"""
Capacity Counter Implementation (Kvrocks)

One hash per event:
    cap:<kind>[:<line_id>]       provisioned by the inventory owner, absent = unbounded
    reserved:<kind>[:<line_id>]  mutated only by the Lua scripts below
"""

from typing import Any, Optional

from opentelemetry import trace
from redis.exceptions import NoScriptError

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger
from src.platform.state.kvrocks_client import kvrocks_client
from src.service.registration.app.interface import ICapacityCounter
from src.service.registration.domain.enum import CapacityKind
from src.service.registration.driven_adapter.state.lua_script import load_lua_script


RESERVE_SCRIPT = 'reserve_capacity'
RELEASE_SCRIPT = 'release_capacity'


def capacity_key(event_id: str) -> str:
    return f'{settings.KVROCKS_KEY_PREFIX}capacity:event:{event_id}'


def counter_field(prefix: str, kind: CapacityKind, line_id: Optional[str]) -> str:
    return f'{prefix}:{kind}:{line_id}' if line_id else f'{prefix}:{kind}'


class KvrocksCapacityCounterImpl(ICapacityCounter):
    def __init__(self) -> None:
        self.tracer = trace.get_tracer(__name__)
        self._scripts: dict[str, Any] = {}

    async def _run(self, script_name: str, *, keys: list[str], args: list[Any]) -> int:
        client = kvrocks_client.get_client()
        script = self._scripts.get(script_name)
        if script is None:
            script = client.register_script(load_lua_script(script_name=script_name))
            self._scripts[script_name] = script
        try:
            return int(await script(keys=keys, args=args, client=client))
        except NoScriptError:
            Logger.base.warning(f'⚠️ [LUA] {script_name} not found, re-registering...')
            script = client.register_script(load_lua_script(script_name=script_name))
            self._scripts[script_name] = script
            return int(await script(keys=keys, args=args, client=client))

    @Logger.io
    async def reserve(
        self, *, event_id: str, kind: CapacityKind, qty: int = 1, line_id: Optional[str] = None
    ) -> bool:
        with self.tracer.start_as_current_span(
            'capacity.reserve',
            attributes={'event.id': event_id, 'capacity.kind': str(kind), 'capacity.qty': qty},
        ):
            reserved = await self._run(
                RESERVE_SCRIPT,
                keys=[capacity_key(event_id)],
                args=[
                    counter_field('cap', kind, line_id),
                    counter_field('reserved', kind, line_id),
                    qty,
                ],
            )
            return reserved >= 0

    @Logger.io
    async def release(
        self, *, event_id: str, kind: CapacityKind, qty: int = 1, line_id: Optional[str] = None
    ) -> None:
        with self.tracer.start_as_current_span(
            'capacity.release',
            attributes={'event.id': event_id, 'capacity.kind': str(kind), 'capacity.qty': qty},
        ):
            await self._run(
                RELEASE_SCRIPT,
                keys=[capacity_key(event_id)],
                args=[counter_field('reserved', kind, line_id), qty],
            )
