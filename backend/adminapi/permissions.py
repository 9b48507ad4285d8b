from rest_framework.permissions import BasePermission


class IsPlatformAdmin(BasePermission):
    """
    Allows access only to ADMIN-role users, staff or superusers. Blocked
    accounts are refused even if their token is still valid.
    """
    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        if getattr(user, "is_blocked", False):
            return False
        return bool(getattr(user, "is_platform_admin", False))
