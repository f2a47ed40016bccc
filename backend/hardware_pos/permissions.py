# Overview: Closed role set, capability definitions and the acting user passed into services.

"""
Roles come from the identity provider's role claim and are never stored here.

Each write operation in the service layer receives an explicit ``Actor`` and
checks the capability it needs; nothing reads the current user from global
state below the route layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import PermissionDeniedError, ValidationError


class Role(str, Enum):
    OWNER = "owner"
    MANAGER = "manager"
    CASHIER = "cashier"
    STAFF = "staff"


class Capability(str, Enum):
    VIEW = "view"
    VIEW_REPORTS = "view_reports"
    MANAGE_CATALOG = "manage_catalog"
    CREATE_SALE = "create_sale"
    DELETE_SALE = "delete_sale"
    MANAGE_PURCHASES = "manage_purchases"
    ADJUST_STOCK = "adjust_stock"
    RECORD_PAYMENT = "record_payment"
    DELETE_PAYMENT = "delete_payment"
    MANAGE_EXPENSES = "manage_expenses"


_ALL = frozenset(Capability)

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.OWNER: _ALL,
    Role.MANAGER: _ALL,
    Role.CASHIER: frozenset({
        Capability.VIEW,
        Capability.VIEW_REPORTS,
        Capability.CREATE_SALE,
        Capability.RECORD_PAYMENT,
    }),
    Role.STAFF: frozenset({
        Capability.VIEW,
        Capability.VIEW_REPORTS,
    }),
}


def parse_role(value: str | None) -> Role:
    if value is None:
        raise ValidationError("role is required")
    try:
        return Role(value.strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown role: {value}")


@dataclass(frozen=True)
class Actor:
    """The authenticated caller an operation runs on behalf of."""
    actor_id: str
    role: Role

    def can(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES[self.role]

    def require(self, capability: Capability) -> None:
        if not self.can(capability):
            raise PermissionDeniedError(
                f"Role '{self.role.value}' may not {capability.value.replace('_', ' ')}",
                details={"required_capability": capability.value, "role": self.role.value},
            )


# Used by maintenance commands that run outside a request
SYSTEM_ACTOR = Actor(actor_id="system", role=Role.OWNER)
