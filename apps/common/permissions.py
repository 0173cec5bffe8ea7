from rest_framework.permissions import SAFE_METHODS, BasePermission

from apps.accounts.models import UserRole

CUSTOMER_CAPABILITIES = {
    "catalog.view",
    "customization.request",
}

MANAGER_CAPABILITIES = CUSTOMER_CAPABILITIES | {
    "catalog.manage",
    "costs.manage",
    "customization.view.all",
    "customization.manage",
    "audit.view",
}

ROLE_CAPABILITIES = {
    UserRole.SUPER_ADMIN: MANAGER_CAPABILITIES,
    UserRole.SHOP_MANAGER: MANAGER_CAPABILITIES,
    UserRole.CUSTOMER: CUSTOMER_CAPABILITIES,
}


def resolve_role(user):
    if getattr(user, "is_superuser", False):
        return UserRole.SUPER_ADMIN
    group_names = set(user.groups.values_list("name", flat=True))
    for role in (UserRole.SUPER_ADMIN, UserRole.SHOP_MANAGER, UserRole.CUSTOMER):
        if role in group_names:
            return role
    return getattr(user, "role", UserRole.CUSTOMER)


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


class IsManagerOrReadOnly(BasePermission):
    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return has_capability(request.user, "costs.manage")
