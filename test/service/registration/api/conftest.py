"""
API test client

Builds the real app through create_app with a no-op lifespan, then points
every use-case dependency at the in-memory engine from the parent conftest.
"""

from collections.abc import AsyncIterator, Generator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.testclient import TestClient
import pytest

from src.platform.app_factory import create_app
from src.service.registration.app.command.assign_resources_use_case import AssignResourcesUseCase
from src.service.registration.app.command.cancel_registration_use_case import (
    CancelRegistrationUseCase,
)
from src.service.registration.app.command.check_in_registration_use_case import (
    CheckInRegistrationUseCase,
)
from src.service.registration.app.command.checkout_registration_use_case import (
    CheckoutRegistrationUseCase,
)
from src.service.registration.app.command.create_registration_use_case import (
    CreateRegistrationUseCase,
)
from src.service.registration.app.command.expire_registration_holds_use_case import (
    ExpireRegistrationHoldsUseCase,
)
from src.service.registration.app.command.issue_ticket_use_case import IssueTicketUseCase
from src.service.registration.app.command.reconcile_payment_webhook_use_case import (
    ReconcilePaymentWebhookUseCase,
)
from src.service.registration.app.command.resend_confirmation_use_case import (
    ResendConfirmationUseCase,
)
from src.service.registration.app.command.update_registration_use_case import (
    UpdateRegistrationUseCase,
)
from src.service.registration.app.query.get_check_in_readiness_use_case import (
    GetCheckInReadinessUseCase,
)
from src.service.registration.app.query.get_registration_use_case import GetRegistrationUseCase
from src.service.registration.app.query.list_registrations_use_case import (
    ListRegistrationsUseCase,
)


@asynccontextmanager
async def _no_io_lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield


@pytest.fixture
def client(engine) -> Generator[TestClient, None, None]:
    app = create_app(lifespan=_no_io_lifespan, title_suffix=' (Test)')
    app.dependency_overrides.update(
        {
            CreateRegistrationUseCase.depends: lambda: engine.create,
            CheckoutRegistrationUseCase.depends: lambda: engine.checkout,
            AssignResourcesUseCase.depends: lambda: engine.assign,
            CancelRegistrationUseCase.depends: lambda: engine.cancel,
            ExpireRegistrationHoldsUseCase.depends: lambda: engine.expire,
            ReconcilePaymentWebhookUseCase.depends: lambda: engine.webhook,
            CheckInRegistrationUseCase.depends: lambda: engine.check_in,
            GetRegistrationUseCase.depends: lambda: engine.get,
            GetCheckInReadinessUseCase.depends: lambda: engine.readiness,
            UpdateRegistrationUseCase.depends: lambda: engine.update,
            ListRegistrationsUseCase.depends: lambda: engine.list,
            IssueTicketUseCase.depends: lambda: engine.issue_ticket,
            ResendConfirmationUseCase.depends: lambda: engine.resend,
        }
    )
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
