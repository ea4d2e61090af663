"""
Academy Models

Covers: Courses, Batches (capacity-bounded course sessions), Enrollments.

``Batch.current_enrolled`` is a denormalized count of the batch's
enrollment rows. It is written only by the enrollment services in
``academy.services`` (inside a transaction holding the batch row lock)
and is backed by database constraints so a stray write cannot overbook.
"""

import uuid
from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils.text import slugify


# =============================================================================
# COURSE
# =============================================================================

class Course(models.Model):
    """A course in the catalog. Seats are booked on its batches."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    title = models.CharField('Title', max_length=300)
    slug = models.SlugField(max_length=320, unique=True, db_index=True)
    description = models.TextField('Description', blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    instructor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='courses_created',
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Course'
        verbose_name_plural = 'Courses'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=Q(price__gte=0), name='course_price_non_negative',
            ),
        ]

    def __str__(self):
        return self.title or '(untitled)'

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = f'{slugify(self.title)[:300] or "course"}-{str(self.id)[:8]}'
        super().save(*args, **kwargs)


# =============================================================================
# BATCH
# =============================================================================

class Batch(models.Model):
    """
    A scheduled, capacity-bounded instance of a course.

    ``current_enrolled`` always equals the number of Enrollment rows that
    reference this batch and never exceeds ``max_seats``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    course = models.ForeignKey(
        Course, on_delete=models.CASCADE, related_name='batches',
    )
    start_date = models.DateTimeField('Start date', db_index=True)
    max_seats = models.PositiveIntegerField('Seats')
    current_enrolled = models.PositiveIntegerField('Seats taken', default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Batch'
        verbose_name_plural = 'Batches'
        ordering = ['start_date']
        constraints = [
            models.CheckConstraint(
                condition=Q(max_seats__gte=1), name='batch_max_seats_positive',
            ),
            models.CheckConstraint(
                condition=Q(current_enrolled__lte=F('max_seats')),
                name='batch_not_overbooked',
            ),
        ]
        indexes = [
            models.Index(fields=['course', 'start_date'], name='academy_batch_course_start_idx'),
        ]

    def __str__(self):
        return f'{self.course.title} @ {self.start_date:%Y-%m-%d}'

    @property
    def seats_available(self):
        return max(0, self.max_seats - self.current_enrolled)

    @property
    def is_full(self):
        return self.current_enrolled >= self.max_seats


# =============================================================================
# ENROLLMENT
# =============================================================================

class EnrollmentStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    CONFIRMED = 'CONFIRMED', 'Confirmed'


class Enrollment(models.Model):
    """
    One user's seat in one batch.

    Cancellation deletes the row, so every row is live. The UUID id keeps
    booking references non-sequential.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
        related_name='enrollments',
    )
    batch = models.ForeignKey(
        Batch, on_delete=models.CASCADE, related_name='enrollments',
    )
    status = models.CharField(
        max_length=20, choices=EnrollmentStatus.choices,
        default=EnrollmentStatus.PENDING,
    )
    progress = models.DecimalField(
        max_digits=5, decimal_places=2, default=0,
        help_text='Overall completion percentage 0-100',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Enrollment'
        verbose_name_plural = 'Enrollments'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'batch'], name='unique_enrollment_per_user_batch',
            ),
            models.CheckConstraint(
                condition=Q(progress__gte=0) & Q(progress__lte=100),
                name='enrollment_progress_range',
            ),
        ]
        indexes = [
            models.Index(fields=['batch', 'status'], name='academy_enr_batch_status_idx'),
        ]

    def __str__(self):
        return f'{self.user} in {self.batch}'
