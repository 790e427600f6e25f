"""
https://python-dependency-injector.ets-labs.org/index.html
https://python-dependency-injector.ets-labs.org/examples/fastapi.html
"""

from dependency_injector import containers, providers

from src.platform.config.core_setting import Settings, settings
from src.service.registration.app.service.hold_lifecycle_manager import HoldLifecycleManager
from src.service.registration.app.service.registration_release_service import (
    RegistrationReleaseService,
)
from src.service.registration.app.service.resource_assignment_service import (
    ResourceAssignmentService,
)
from src.service.registration.driven_adapter.notification.notification_outbox_dispatcher_impl import (
    NotificationOutboxDispatcherImpl,
)
from src.service.registration.driven_adapter.payment.simulated_payment_gateway_impl import (
    SimulatedPaymentGatewayImpl,
)
from src.service.registration.driven_adapter.payment.stripe_payment_gateway_impl import (
    StripePaymentGatewayImpl,
)
from src.service.registration.driven_adapter.repo.event_query_repo_impl import EventQueryRepoImpl
from src.service.registration.driven_adapter.repo.registration_repo_impl import (
    RegistrationRepoImpl,
)
from src.service.registration.driven_adapter.repo.reservation_hold_repo_impl import (
    ReservationHoldRepoImpl,
)
from src.service.registration.driven_adapter.repo.ticket_repo_impl import TicketRepoImpl
from src.service.registration.driven_adapter.state.kvrocks_capacity_counter_impl import (
    KvrocksCapacityCounterImpl,
)
from src.service.registration.driven_adapter.validator.resource_validator_impl import (
    EventLineValidatorImpl,
    PhysicalResourceValidatorImpl,
)


def _payment_mode() -> str:
    return 'simulated' if settings.PAYMENT_SIMULATE else 'stripe'


class Container(containers.DeclarativeContainer):
    # Configuration
    config_service = providers.Singleton(Settings)

    # Repositories (stateless - acquire from the asyncpg pool per call)
    registration_repo = providers.Singleton(RegistrationRepoImpl)
    reservation_hold_repo = providers.Singleton(ReservationHoldRepoImpl)
    event_query_repo = providers.Singleton(EventQueryRepoImpl)
    ticket_repo = providers.Singleton(TicketRepoImpl)

    # Kvrocks capacity counters
    capacity_counter = providers.Singleton(KvrocksCapacityCounterImpl)

    # Payment gateway, built once at startup
    payment_gateway = providers.Selector(
        _payment_mode,
        simulated=providers.Singleton(
            SimulatedPaymentGatewayImpl,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET.get_secret_value(),
        ),
        stripe=providers.Singleton(
            StripePaymentGatewayImpl,
            api_key=settings.STRIPE_SECRET_KEY.get_secret_value(),
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET.get_secret_value(),
        ),
    )

    notification_dispatcher = providers.Singleton(
        NotificationOutboxDispatcherImpl, simulate=settings.NOTIFY_SIMULATE
    )

    # Resource validators
    stall_validator = providers.Singleton(
        PhysicalResourceValidatorImpl, event_query_repo=event_query_repo, resource_type='stall'
    )
    rv_validator = providers.Singleton(
        PhysicalResourceValidatorImpl, event_query_repo=event_query_repo, resource_type='rv'
    )
    event_line_validator = providers.Singleton(
        EventLineValidatorImpl, event_query_repo=event_query_repo
    )

    # Engine services
    hold_lifecycle_manager = providers.Singleton(
        HoldLifecycleManager, hold_repo=reservation_hold_repo
    )
    resource_assignment_service = providers.Singleton(
        ResourceAssignmentService,
        registration_repo=registration_repo,
        hold_repo=reservation_hold_repo,
        hold_lifecycle_manager=hold_lifecycle_manager,
    )
    registration_release_service = providers.Singleton(
        RegistrationReleaseService,
        capacity_counter=capacity_counter,
        hold_lifecycle_manager=hold_lifecycle_manager,
    )


container = Container()


def setup() -> None:
    container.config_service()


def cleanup() -> None:
    container.reset_singletons()
