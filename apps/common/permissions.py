from rest_framework.permissions import BasePermission

from apps.accounts.models import EmployeeRole


ADMIN_CAPABILITIES = {
    "employees.view",
    "employees.manage",
    "shops.view",
    "shops.manage",
    "ledger.view",
    "ledger.manage",
    "transactions.view",
    "transactions.view.all",
    "transactions.collect",
    "transactions.reverse",
    "handovers.manage",
    "invoices.view",
    "invoices.manage",
    "settlements.view",
    "settlements.view.all",
    "settlements.create",
    "settlements.manage",
    "reconciliations.view",
    "reconciliations.manage",
    "routes.view",
    "routes.manage",
    "assignments.view",
    "assignments.view.all",
    "assignments.manage",
    "reports.view",
}

ROLE_CAPABILITIES = {
    EmployeeRole.SUPER_ADMIN: ADMIN_CAPABILITIES,
    EmployeeRole.ADMIN: ADMIN_CAPABILITIES,
    EmployeeRole.FIELD_STAFF: {
        "shops.view",
        "ledger.view",
        "transactions.view",
        "transactions.collect",
        "invoices.view",
        "settlements.view",
        "settlements.create",
        "routes.view",
        "assignments.view",
    },
}


def resolve_role(user):
    group_names = set(user.groups.values_list("name", flat=True))
    for role in (EmployeeRole.SUPER_ADMIN, EmployeeRole.ADMIN, EmployeeRole.FIELD_STAFF):
        if role in group_names:
            return role
    return getattr(user, "role", EmployeeRole.FIELD_STAFF)


def has_capability(user, capability):
    if not user or not user.is_authenticated:
        return False
    return capability in ROLE_CAPABILITIES.get(resolve_role(user), set())


class RolePermission(BasePermission):
    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        capability_map = getattr(view, "capability_map", {})
        action = getattr(view, "action", None) or request.method.lower()
        required = capability_map.get(action) or capability_map.get(request.method.lower()) or set()
        if not required:
            return True

        user_caps = ROLE_CAPABILITIES.get(resolve_role(request.user), set())
        return all(cap in user_caps for cap in required)
