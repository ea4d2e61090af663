"""
User Admin Configuration
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.forms import BaseUserCreationForm, UserChangeForm as BaseUserChangeForm
from django.utils.html import format_html

from academy.services.enrollment_service import delete_users

from .models import User, UserRole


class UserCreationForm(BaseUserCreationForm):
    class Meta:
        model = User
        fields = ('email', 'first_name', 'last_name', 'role')


class UserChangeForm(BaseUserChangeForm):
    class Meta:
        model = User
        fields = '__all__'


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Custom admin for User model with UUID support."""

    form = UserChangeForm
    add_form = UserCreationForm

    list_display = ['email', 'full_name', 'role_badge', 'is_active', 'date_joined']
    list_filter = ['role', 'is_staff', 'is_active']
    search_fields = ['email', 'first_name', 'last_name']
    ordering = ['-date_joined']
    readonly_fields = ['id', 'date_joined', 'last_login', 'updated_at']

    fieldsets = (
        (None, {
            'fields': ('id', 'email', 'password')
        }),
        ('Personal info', {
            'fields': ('first_name', 'last_name')
        }),
        ('Role', {
            'fields': ('role',)
        }),
        ('Django permissions', {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
            'classes': ('collapse',),
        }),
        ('Dates', {
            'fields': ('date_joined', 'last_login', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'password1', 'password2', 'first_name', 'last_name', 'role'),
        }),
    )

    @admin.display(description='Role', ordering='role')
    def role_badge(self, obj):
        colors = {
            UserRole.SUPER_ADMIN: '#dc2626',
            UserRole.ADMIN: '#ea580c',
            UserRole.INSTRUCTOR: '#2563eb',
            UserRole.STUDENT: '#6b7280',
        }
        color = colors.get(obj.role, '#6b7280')
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 8px; '
            'border-radius: 4px; font-size: 11px;">{}</span>',
            color, obj.get_role_display()
        )

    actions = ['deactivate_users', 'promote_to_instructor']

    @admin.action(description="Deactivate selected users")
    def deactivate_users(self, request, queryset):
        count = queryset.update(is_active=False)
        self.message_user(request, f"{count} user(s) deactivated.")

    @admin.action(description="Promote to instructor")
    def promote_to_instructor(self, request, queryset):
        count = queryset.update(role=UserRole.INSTRUCTOR)
        self.message_user(request, f"{count} user(s) promoted to instructor.")

    # Both delete paths lock the held batches before the enrollment cascade
    def delete_model(self, request, obj):
        delete_users([obj.pk])

    def delete_queryset(self, request, queryset):
        delete_users(queryset.values_list('pk', flat=True))
