"""
User URL Configuration

Authentication endpoints:
    /api/auth/register/          - User registration
    /api/auth/login/             - JWT login
    /api/auth/token/refresh/     - Refresh JWT token
    /api/auth/me/                - User profile

Admin endpoints:
    /api/admin/users/            - User management

Utility endpoints:
    /api/user-roles/             - List user roles
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import (
    TokenRefreshView,
    TokenVerifyView,
)

from .views import (
    RegisterView,
    LoginView,
    ProfileView,
    AdminUserViewSet,
    UserRolesView,
)


admin_router = DefaultRouter()
admin_router.register(r'users', AdminUserViewSet, basename='admin-users')


auth_urlpatterns = [
    path('register/', RegisterView.as_view(), name='register'),
    path('login/', LoginView.as_view(), name='login'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('token/verify/', TokenVerifyView.as_view(), name='token-verify'),
    path('me/', ProfileView.as_view(), name='profile'),
]

utility_urlpatterns = [
    path('user-roles/', UserRolesView.as_view(), name='user-roles'),
]

admin_urlpatterns = [
    path('', include(admin_router.urls)),
]

app_name = 'users'

urlpatterns = [
    path('auth/', include((auth_urlpatterns, 'auth'))),
    path('admin/', include((admin_urlpatterns, 'admin'))),
    path('', include(utility_urlpatterns)),
]
