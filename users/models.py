"""
User Model for the seat-booking platform

Supplies the verified identity the booking engine works with:
- UUID primary key
- email login
- UserRole: STUDENT, INSTRUCTOR, ADMIN, SUPER_ADMIN
"""

import uuid
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models
from django.utils import timezone


# =============================================================================
# ENUMERATIONS
# =============================================================================

class UserRole(models.TextChoices):
    """Platform roles."""
    STUDENT = 'STUDENT', 'Student'
    INSTRUCTOR = 'INSTRUCTOR', 'Instructor'
    ADMIN = 'ADMIN', 'Administrator'
    SUPER_ADMIN = 'SUPER_ADMIN', 'Super Administrator'


ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPER_ADMIN)
STAFF_ROLES = (UserRole.INSTRUCTOR, UserRole.ADMIN, UserRole.SUPER_ADMIN)


# =============================================================================
# USER MANAGER
# =============================================================================

class UserManager(BaseUserManager):
    """
    Custom user manager for email-based accounts with UUID primary keys.
    """

    def create_user(self, email, password=None, **extra_fields):
        """Create and save a regular user."""
        if not email:
            raise ValueError('An email address is required')

        email = self.normalize_email(email)
        extra_fields.setdefault('role', UserRole.STUDENT)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Create and save a superuser."""
        extra_fields.setdefault('role', UserRole.SUPER_ADMIN)
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


# =============================================================================
# USER MODEL
# =============================================================================

class User(AbstractBaseUser, PermissionsMixin):
    """
    Platform user.

    The ``role`` field is what the enrollment engine uses for
    authorization decisions (owner vs. administrator).
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )

    email = models.EmailField(
        'Email address',
        unique=True,
        db_index=True
    )

    first_name = models.CharField('First name', max_length=150, blank=True)
    last_name = models.CharField('Last name', max_length=150, blank=True)

    role = models.CharField(
        'Role',
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.STUDENT,
        db_index=True
    )

    is_staff = models.BooleanField(
        'Staff status',
        default=False,
        help_text='Allows access to the Django admin site.'
    )
    is_active = models.BooleanField(
        'Active',
        default=True,
        help_text='Whether this user can log in.'
    )

    date_joined = models.DateTimeField('Date joined', default=timezone.now)
    updated_at = models.DateTimeField('Last modified', auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['-date_joined']
        indexes = [
            models.Index(fields=['role', 'is_active'], name='users_role_active_idx'),
        ]

    def __str__(self):
        return self.email

    # ==========================================================================
    # PROPERTIES
    # ==========================================================================

    @property
    def full_name(self):
        """Return full name or the email local part if no name is set."""
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name if full_name else self.email.split('@')[0]

    @property
    def is_admin(self):
        """Check if user has admin privileges."""
        return self.role in ADMIN_ROLES

    @property
    def is_instructor(self):
        return self.role == UserRole.INSTRUCTOR

    @property
    def can_manage_batches(self):
        """Instructors and admins manage courses, batches and batch rosters."""
        return self.role in STAFF_ROLES

    # ==========================================================================
    # METHODS
    # ==========================================================================

    def get_short_name(self):
        return self.first_name or self.email.split('@')[0]

    def deactivate(self):
        """Block logins without touching the user's bookings."""
        self.is_active = False
        self.save(update_fields=['is_active', 'updated_at'])

    def promote_to_admin(self):
        self.role = UserRole.ADMIN
        self.is_staff = True
        self.save(update_fields=['role', 'is_staff', 'updated_at'])

    def promote_to_instructor(self):
        self.role = UserRole.INSTRUCTOR
        self.save(update_fields=['role', 'updated_at'])
