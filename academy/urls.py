"""
Academy URL configuration.

All endpoints are prefixed with /api/academy/ (set in root urls.py).
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from academy import views

router = DefaultRouter()
router.register(r'courses', views.CourseViewSet, basename='course')
router.register(r'batches', views.BatchViewSet, basename='batch')
router.register(r'enrollments', views.EnrollmentViewSet, basename='enrollment')

urlpatterns = [
    path('', include(router.urls)),
]
