"""
Academy Permissions — object-level access to enrollments.
"""

from rest_framework.permissions import BasePermission

from users.permissions import is_admin


class IsOwnerOrAdmin(BasePermission):
    """
    Object-level: users see only their own enrollments.
    Admins see everything.
    """

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        if is_admin(request.user):
            return True
        return getattr(obj, 'user_id', None) == request.user.pk
