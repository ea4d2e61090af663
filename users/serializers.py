"""
User Serializers

Provides serializers for:
- User registration
- JWT login (email + password, role claim)
- User profile (read/update)
- Admin user management
"""

from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from .models import User, UserRole


# =============================================================================
# AUTHENTICATION SERIALIZERS
# =============================================================================

class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    JWT serializer that authenticates by email and embeds the user's
    email and role in the issued tokens.
    """
    username_field = 'email'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['email'] = serializers.EmailField(required=True)
        self.fields['password'] = serializers.CharField(
            write_only=True,
            required=True,
            style={'input_type': 'password'}
        )
        if 'username' in self.fields:
            del self.fields['username']

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['role'] = user.role
        return token

    def validate(self, attrs):
        email = attrs.get('email')
        password = attrs.get('password')

        if not email or not password:
            raise serializers.ValidationError({
                'detail': 'Email and password are required.'
            })

        authenticated_user = authenticate(
            request=self.context.get('request'),
            email=email,
            password=password
        )

        # ModelBackend refuses inactive users, so both cases land here
        if authenticated_user is None:
            raise serializers.ValidationError({
                'detail': 'Invalid email or password.'
            })

        refresh = self.get_token(authenticated_user)

        return {
            'refresh': str(refresh),
            'access': str(refresh.access_token),
            'user': {
                'id': str(authenticated_user.id),
                'email': authenticated_user.email,
                'first_name': authenticated_user.first_name,
                'last_name': authenticated_user.last_name,
                'role': authenticated_user.role,
            }
        }


# =============================================================================
# PUBLIC SERIALIZERS
# =============================================================================

class UserRegistrationSerializer(serializers.ModelSerializer):
    """Serializer for user registration."""

    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password],
        style={'input_type': 'password'}
    )
    password_confirm = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )
    role = serializers.ChoiceField(
        choices=[UserRole.STUDENT, UserRole.INSTRUCTOR],
        default=UserRole.STUDENT,
        help_text='Administrative roles are granted by an administrator only.'
    )

    class Meta:
        model = User
        fields = [
            'email', 'password', 'password_confirm',
            'first_name', 'last_name', 'role',
        ]

    def validate(self, attrs):
        if attrs['password'] != attrs.pop('password_confirm'):
            raise serializers.ValidationError({
                'password_confirm': "Passwords do not match."
            })
        return attrs

    def create(self, validated_data):
        return User.objects.create_user(
            email=validated_data['email'],
            password=validated_data['password'],
            first_name=validated_data.get('first_name', ''),
            last_name=validated_data.get('last_name', ''),
            role=validated_data['role'],
        )


class UserProfileSerializer(serializers.ModelSerializer):
    """Serializer for the current user's profile."""

    full_name = serializers.ReadOnlyField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'full_name',
            'role', 'date_joined', 'last_login',
        ]
        read_only_fields = ['id', 'email', 'role', 'date_joined', 'last_login']


class UserProfileUpdateSerializer(serializers.ModelSerializer):

    class Meta:
        model = User
        fields = ['first_name', 'last_name']


class UserCompactSerializer(serializers.ModelSerializer):
    """Compact user serializer for nested use in other serializers."""

    class Meta:
        model = User
        fields = ['id', 'email', 'role']


# =============================================================================
# ADMIN SERIALIZERS
# =============================================================================

class AdminUserSerializer(serializers.ModelSerializer):
    """Full user serializer for admin operations."""

    full_name = serializers.ReadOnlyField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'full_name',
            'role', 'is_staff', 'is_active',
            'date_joined', 'last_login', 'updated_at'
        ]
        read_only_fields = ['id', 'email', 'date_joined', 'last_login', 'updated_at']
