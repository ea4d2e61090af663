"""
Academy Admin — courses, batches and enrollments.

Seat counters are never edited by hand here: capacity changes go through
``update_batch`` and enrollment deletes go through ``cancel_enrollment``.
"""

from django import forms
from django.contrib import admin

from academy.models import Batch, Course, Enrollment
from academy.services.batch_service import delete_batch, update_batch
from academy.services.enrollment_service import cancel_enrollment, set_enrollment_status


# ─── Inlines ─────────────────────────────────────────────────────────────────

class BatchInline(admin.TabularInline):
    model = Batch
    extra = 0
    fields = ['start_date', 'max_seats', 'current_enrolled']
    readonly_fields = ['current_enrolled']
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


# ─── Forms ───────────────────────────────────────────────────────────────────

class BatchAdminForm(forms.ModelForm):
    class Meta:
        model = Batch
        fields = ['course', 'start_date', 'max_seats']

    def clean_max_seats(self):
        max_seats = self.cleaned_data['max_seats']
        if self.instance.pk and max_seats < self.instance.current_enrolled:
            raise forms.ValidationError(
                f'{self.instance.current_enrolled} users are already enrolled.'
            )
        return max_seats


# ─── Model Admins ────────────────────────────────────────────────────────────

@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ['title', 'slug', 'price', 'instructor', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['title', 'slug']
    raw_id_fields = ['instructor']
    inlines = [BatchInline]


@admin.register(Batch)
class BatchAdmin(admin.ModelAdmin):
    form = BatchAdminForm
    list_display = ['course', 'start_date', 'max_seats', 'current_enrolled', 'seats_available']
    list_filter = ['course']
    readonly_fields = ['current_enrolled']
    raw_id_fields = ['course']

    def save_model(self, request, obj, form, change):
        if not change:
            obj.save()
            return
        changes = {field: form.cleaned_data[field] for field in form.changed_data}
        if changes:
            update_batch(obj, **changes)

    def delete_model(self, request, obj):
        delete_batch(obj)

    def delete_queryset(self, request, queryset):
        for batch in queryset:
            delete_batch(batch)


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ['user', 'batch', 'status', 'progress', 'created_at']
    list_filter = ['status']
    search_fields = ['user__email']
    raw_id_fields = ['user', 'batch']
    readonly_fields = ['id', 'user', 'batch', 'progress', 'created_at', 'updated_at']

    def has_add_permission(self, request):
        return False

    def save_model(self, request, obj, form, change):
        if 'status' in form.changed_data:
            set_enrollment_status(obj.pk, obj.status)

    def delete_model(self, request, obj):
        cancel_enrollment(obj.pk, request.user.pk, request.user.role)

    def delete_queryset(self, request, queryset):
        for enrollment in queryset:
            cancel_enrollment(enrollment.pk, request.user.pk, request.user.role)
