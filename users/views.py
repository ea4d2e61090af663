"""
User Views

Provides endpoints for:
- Authentication (register, login)
- User profile management
- Admin user management
"""

import logging

from django.db import models
from rest_framework import viewsets, status, generics, mixins
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView
from drf_spectacular.utils import extend_schema

from academy.exceptions import StoreUnavailable
from academy.services.enrollment_service import delete_users
from academy.views import error_response

from .models import User, UserRole
from .permissions import IsAdminOrSuperAdmin
from .serializers import (
    UserRegistrationSerializer,
    UserProfileSerializer,
    UserProfileUpdateSerializer,
    AdminUserSerializer,
    CustomTokenObtainPairSerializer,
)

logger = logging.getLogger(__name__)


# =============================================================================
# AUTHENTICATION VIEWS
# =============================================================================

class RegisterView(generics.CreateAPIView):
    """
    POST /api/auth/register/

    Register a new account and return a JWT pair for it.
    """
    queryset = User.objects.all()
    permission_classes = [AllowAny]
    authentication_classes = []
    serializer_class = UserRegistrationSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        refresh = CustomTokenObtainPairSerializer.get_token(user)
        logger.info(f'Registered user {user.id} role={user.role}')

        return Response({
            'user': UserProfileSerializer(user).data,
            'tokens': {
                'refresh': str(refresh),
                'access': str(refresh.access_token),
            },
        }, status=status.HTTP_201_CREATED)


class LoginView(TokenObtainPairView):
    """
    POST /api/auth/login/

    Login with email and password.
    Returns JWT tokens and user info.
    """
    permission_classes = [AllowAny]
    serializer_class = CustomTokenObtainPairSerializer


class ProfileView(generics.RetrieveUpdateAPIView):
    """
    GET /api/auth/me/
    PATCH /api/auth/me/
    """
    permission_classes = [IsAuthenticated]

    def get_serializer_class(self):
        if self.request.method in ['PUT', 'PATCH']:
            return UserProfileUpdateSerializer
        return UserProfileSerializer

    def get_object(self):
        return self.request.user

    def update(self, request, *args, **kwargs):
        kwargs['partial'] = True
        super().update(request, *args, **kwargs)
        return Response(UserProfileSerializer(self.get_object()).data)


# =============================================================================
# ADMIN USER MANAGEMENT VIEWS
# =============================================================================

class AdminUserViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    Admin management of users.

    GET /api/admin/users/ - List all users
    GET /api/admin/users/{id}/ - Get user
    PATCH /api/admin/users/{id}/ - Update names, role, flags
    DELETE /api/admin/users/{id}/ - Delete user; their seats are released
    """
    queryset = User.objects.all().order_by('-date_joined')
    serializer_class = AdminUserSerializer
    permission_classes = [IsAuthenticated, IsAdminOrSuperAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()

        role = self.request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role)

        search = self.request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                models.Q(email__icontains=search) |
                models.Q(first_name__icontains=search) |
                models.Q(last_name__icontains=search)
            )

        return queryset

    def destroy(self, request, *args, **kwargs):
        user = self.get_object()
        try:
            delete_users([user.pk])
        except StoreUnavailable as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=None, responses=AdminUserSerializer)
    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        user = self.get_object()
        user.deactivate()
        return Response(AdminUserSerializer(user).data)

    @extend_schema(request=None, responses=AdminUserSerializer)
    @action(detail=True, methods=['post'])
    def promote_admin(self, request, pk=None):
        user = self.get_object()
        user.promote_to_admin()
        return Response(AdminUserSerializer(user).data)

    @extend_schema(request=None, responses=AdminUserSerializer)
    @action(detail=True, methods=['post'])
    def promote_instructor(self, request, pk=None):
        user = self.get_object()
        user.promote_to_instructor()
        return Response(AdminUserSerializer(user).data)


# =============================================================================
# UTILITY VIEWS
# =============================================================================

class UserRolesView(APIView):
    """
    GET /api/user-roles/

    Get list of user roles (admin only).
    """
    permission_classes = [IsAuthenticated, IsAdminOrSuperAdmin]

    def get(self, request):
        roles = [{'value': choice[0], 'label': choice[1]} for choice in UserRole.choices]
        return Response(roles)
