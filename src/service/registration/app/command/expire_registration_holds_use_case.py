from datetime import datetime, timezone
from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.registration_metrics import registration_metrics
from src.service.registration.app.dto import ExpireSweepResult
from src.service.registration.app.interface import IRegistrationRepo
from src.service.registration.app.service.registration_release_service import (
    RegistrationReleaseService,
)
from src.service.registration.domain.enum import RegistrationStatus, ReleaseReason


def clamp_sweep_limit(limit: Optional[int]) -> int:
    if limit is None:
        return settings.EXPIRATION_SWEEP_DEFAULT_LIMIT
    return max(1, min(limit, settings.EXPIRATION_SWEEP_MAX_LIMIT))


class ExpireRegistrationHoldsUseCase:
    """
    Expiration sweeper: cancels submitted registrations whose hold deadline passed

    Each expiry is a compare-and-swap on the registration version, so a webhook
    confirming the same registration concurrently wins or loses cleanly and the
    loser is skipped. One registration failing never stops the sweep.
    """

    def __init__(
        self,
        *,
        registration_repo: IRegistrationRepo,
        registration_release_service: RegistrationReleaseService,
    ) -> None:
        self.registration_repo = registration_repo
        self.registration_release_service = registration_release_service
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        registration_repo: IRegistrationRepo = Depends(Provide[Container.registration_repo]),
        registration_release_service: RegistrationReleaseService = Depends(
            Provide[Container.registration_release_service]
        ),
    ) -> Self:
        return cls(
            registration_repo=registration_repo,
            registration_release_service=registration_release_service,
        )

    @Logger.io
    async def sweep(self, *, limit: Optional[int] = None) -> ExpireSweepResult:
        bounded = clamp_sweep_limit(limit)
        with self.tracer.start_as_current_span(
            'registration.expire_sweep', attributes={'sweep.limit': bounded}
        ):
            candidates = await self.registration_repo.list_by_status(
                status=RegistrationStatus.SUBMITTED, limit=bounded
            )
            now = datetime.now(timezone.utc)
            expired_ids: list[str] = []

            for registration in candidates:
                if not registration.hold_expired(now=now):
                    continue
                try:
                    expired = await self.registration_repo.update_if_version(
                        registration=registration.expire(now=now),
                        expected_version=registration.version,
                    )
                    if expired is None:
                        Logger.base.info(
                            f'⏭️ [EXPIRE] {registration.id} changed concurrently, skipped'
                        )
                        continue
                    await self.registration_release_service.release_registration(
                        registration=expired, reason=ReleaseReason.EXPIRED
                    )
                except Exception as e:
                    Logger.base.exception(f'❌ [EXPIRE] Failed to expire {registration.id}: {e}')
                    continue

                expired_ids.append(expired.id)
                registration_metrics.registrations_expired.inc()

            if expired_ids:
                Logger.base.info(
                    f'⌛ [EXPIRE] Expired {len(expired_ids)}/{len(candidates)} submitted registration(s)'
                )
            return ExpireSweepResult(
                scanned_count=len(candidates),
                expired_count=len(expired_ids),
                expired_registration_ids=tuple(expired_ids),
            )
