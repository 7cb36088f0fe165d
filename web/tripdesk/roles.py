from enum import Enum
from typing import Dict, FrozenSet, Iterable


class Role(str, Enum):
    """Enumerates every role recognised by the platform.

    A user may hold several roles; the effective permission set is the union
    of the permissions of each role.
    """

    super_admin = "super_admin"
    admin = "admin"
    operations_manager = "operations_manager"
    finance_manager = "finance_manager"
    support_staff = "support_staff"
    content_manager = "content_manager"
    user = "user"


class Permission(str, Enum):
    view_bookings = "view_bookings"
    cancel_booking = "cancel_booking"
    process_refund = "process_refund"
    verify_payments = "verify_payments"
    manage_trips = "manage_trips"
    manage_batches = "manage_batches"
    manage_seats = "manage_seats"
    manage_destinations = "manage_destinations"
    manage_content = "manage_content"
    view_financial_data = "view_financial_data"
    view_analytics = "view_analytics"
    view_leads = "view_leads"
    manage_leads = "manage_leads"
    view_reviews = "view_reviews"
    manage_reviews = "manage_reviews"
    view_audit_logs = "view_audit_logs"
    manage_roles = "manage_roles"
    delete_booking = "delete_booking"
    force_delete_booking = "force_delete_booking"
    manage_operations = "manage_operations"
    manage_wallets = "manage_wallets"


P = Permission

_ADMIN_PERMISSIONS = frozenset(p for p in Permission if p is not P.force_delete_booking)

ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.super_admin: frozenset(Permission),
    Role.admin: _ADMIN_PERMISSIONS,
    Role.operations_manager: frozenset({
        P.view_bookings,
        P.manage_trips, P.manage_batches, P.manage_seats,
        P.manage_destinations,
        P.view_analytics,
        P.view_leads, P.manage_leads,
        P.view_reviews,
        P.manage_operations,
    }),
    Role.finance_manager: frozenset({
        P.view_bookings,
        P.process_refund,
        P.verify_payments,
        P.view_financial_data,
        P.view_analytics,
        P.manage_wallets,
    }),
    Role.support_staff: frozenset({
        P.view_bookings,
        P.view_leads,
        P.view_reviews,
    }),
    Role.content_manager: frozenset({
        P.manage_destinations,
        P.manage_content,
        P.view_reviews,
        P.manage_reviews,
    }),
    Role.user: frozenset(),
}


def permissions_for(roles: Iterable["str | Role"]) -> FrozenSet[Permission]:
    """Return the union of permissions granted by *roles*; unknown role names grant nothing."""
    granted: set[Permission] = set()
    for raw in roles:
        try:
            role = Role(raw)
        except ValueError:
            continue
        granted |= ROLE_PERMISSIONS[role]
    return frozenset(granted)


def has_permission(roles: Iterable["str | Role"], permission: "str | Permission") -> bool:
    return Permission(permission) in permissions_for(roles)
