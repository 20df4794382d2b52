"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission

BED_MANAGER_ROLES = {"admin", "doctor", "staff"}


def is_bed_manager(user) -> bool:
    return bool(user and user.is_authenticated and getattr(user, "role", None) in BED_MANAGER_ROLES)


class IsBedManager(BasePermission):
    """Allow access only to admin, doctor and staff users."""
    message = "Access denied. Admin, doctor, or staff role required"

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return is_bed_manager(getattr(request, "user", None))

