"""
Role based permission classes.

Staff roles are ``admin``, ``doctor`` and ``receptionist``.  Each class
checks the authenticated user's role; object level ownership (a doctor
may only touch their own records) is enforced in the services.
"""
from rest_framework.permissions import BasePermission


def _role_in(request, roles) -> bool:
    user = getattr(request, "user", None)
    return bool(user and user.is_authenticated and getattr(user, "role", None) in roles)


class IsAdminRole(BasePermission):
    """Allow access only to administrators."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role_in(request, {"admin"})


class IsAdminOrReceptionist(BasePermission):
    """Front desk operations: patients, bookings, payments."""
    def has_permission(self, request, view) -> bool:
        return _role_in(request, {"admin", "receptionist"})


class IsAdminOrDoctor(BasePermission):
    """Clinical operations: medical records, starting and completing visits."""
    def has_permission(self, request, view) -> bool:
        return _role_in(request, {"admin", "doctor"})


class IsStaff(BasePermission):
    """Any of the three clinic roles."""
    def has_permission(self, request, view) -> bool:
        return _role_in(request, {"admin", "doctor", "receptionist"})
