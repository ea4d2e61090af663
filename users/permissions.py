"""
Role-based permissions

- SUPER_ADMIN / ADMIN: administrative access
- INSTRUCTOR: manages courses, batches and rosters
- STUDENT: books and cancels own seats

Uses the custom User model's role field from users.models.UserRole
"""

from rest_framework import permissions


# =============================================================================
# PERMISSION CLASSES
# =============================================================================

class IsAdminOrSuperAdmin(permissions.BasePermission):
    """
    Permission for admin-only endpoints.
    Only ADMIN and SUPER_ADMIN roles can access.
    """
    message = "Only administrators can perform this action."

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return is_admin(request.user)

    def has_object_permission(self, request, view, obj):
        return self.has_permission(request, view)


class IsInstructorOrAdmin(permissions.BasePermission):
    """INSTRUCTOR, ADMIN and SUPER_ADMIN."""
    message = "Only instructors and administrators can perform this action."

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return getattr(request.user, 'can_manage_batches', False)


class IsInstructorOrAdminOrReadOnly(permissions.BasePermission):
    """
    Permission that allows:
    - GET, HEAD, OPTIONS: Anyone (including anonymous)
    - POST, PUT, PATCH, DELETE: INSTRUCTOR/ADMIN/SUPER_ADMIN
    """
    message = "Only instructors and administrators can modify this resource."

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        if not request.user or not request.user.is_authenticated:
            return False
        return getattr(request.user, 'can_manage_batches', False)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def is_admin(user):
    """Check if user has admin privileges."""
    if not user or not user.is_authenticated:
        return False

    if hasattr(user, 'is_admin'):
        return user.is_admin

    return user.is_superuser or user.is_staff
