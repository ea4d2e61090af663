"""
Root URL configuration.

    /api/auth/ ...        users app (register, login, profile)
    /api/admin/users/     user management
    /api/academy/ ...     courses, batches, enrollments
    /api/schema/          OpenAPI schema
    /api/docs/            Swagger UI
    /admin/               Django admin
"""

from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('users.urls')),
    path('api/academy/', include('academy.urls')),
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
]
