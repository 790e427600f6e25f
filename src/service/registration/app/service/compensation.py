"""
Compensation list for the registration sagas.

Forward steps register their undo here as they succeed; `run` replays them in
reverse, each in isolation. A failing compensation is logged and counted, never
raised, so the caller's original error is what propagates.
"""

from collections.abc import Awaitable, Callable

import attrs

from src.platform.logging.loguru_io import Logger
from src.platform.metrics.registration_metrics import registration_metrics


@attrs.frozen
class CompensationStep:
    description: str
    action: Callable[[], Awaitable[object]]


class CompensationList:
    def __init__(self, *, saga: str) -> None:
        self.saga = saga
        self._steps: list[CompensationStep] = []

    def __len__(self) -> int:
        return len(self._steps)

    @property
    def descriptions(self) -> list[str]:
        return [step.description for step in self._steps]

    def add(self, description: str, action: Callable[[], Awaitable[object]]) -> None:
        self._steps.append(CompensationStep(description=description, action=action))

    def clear(self) -> None:
        """Forward pass committed; nothing left to undo"""
        self._steps.clear()

    async def run(self) -> int:
        """
        Execute every registered step, last registered first

        Returns:
            Number of steps that failed
        """
        failures = 0
        for step in reversed(self._steps):
            try:
                await step.action()
                registration_metrics.compensations.labels(result='success').inc()
                Logger.base.info(f'↩️ [COMPENSATE] {self.saga}: {step.description}')
            except Exception as e:
                failures += 1
                registration_metrics.compensations.labels(result='failed').inc()
                Logger.base.exception(
                    f'❌ [COMPENSATE] {self.saga}: {step.description} failed: {e}'
                )
        self._steps.clear()
        return failures
