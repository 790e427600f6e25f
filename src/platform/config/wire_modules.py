"""
Wire Modules Configuration

Defines the modules that need dependency injection wiring.
Shared between production and test environments.
"""

from types import ModuleType

from src.service.registration.app.command import (
    assign_resources_use_case,
    cancel_registration_use_case,
    check_in_registration_use_case,
    checkout_registration_use_case,
    create_registration_use_case,
    expire_registration_holds_use_case,
    issue_ticket_use_case,
    reconcile_payment_webhook_use_case,
    resend_confirmation_use_case,
    update_registration_use_case,
)
from src.service.registration.app.query import (
    get_check_in_readiness_use_case,
    get_registration_use_case,
    list_registrations_use_case,
)


WIRE_MODULES: list[ModuleType] = [
    create_registration_use_case,
    update_registration_use_case,
    checkout_registration_use_case,
    assign_resources_use_case,
    cancel_registration_use_case,
    expire_registration_holds_use_case,
    reconcile_payment_webhook_use_case,
    check_in_registration_use_case,
    issue_ticket_use_case,
    resend_confirmation_use_case,
    get_registration_use_case,
    list_registrations_use_case,
    get_check_in_readiness_use_case,
]
