"""
Batch Service — schedule and resize batches.

``current_enrolled`` is never written here; capacity edits go through
``capacity_service.set_max_seats`` so they cannot drop below occupancy.
"""

import logging

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from academy.models import Batch, Course
from academy.services import capacity_service

logger = logging.getLogger(__name__)

BATCH_EDITABLE_FIELDS = ('course', 'start_date')


def create_batch(course: Course, start_date, max_seats: int) -> Batch:
    batch = Batch.objects.create(
        course=course,
        start_date=start_date,
        max_seats=max_seats,
        current_enrolled=0,
    )
    logger.info(f'Batch {batch.pk} created for course {course.pk} ({max_seats} seats)')
    return batch


def update_batch(batch: Batch, **changes) -> Batch:
    """
    Apply schedule and capacity changes to a batch.

    Unknown keys (including ``current_enrolled``) are ignored.

    Raises:
        CapacityError: if ``max_seats`` would drop below the seats taken.
    """
    with transaction.atomic():
        if 'max_seats' in changes:
            batch = capacity_service.set_max_seats(batch.pk, changes['max_seats'])
        else:
            batch = capacity_service.lock_batch(batch.pk)

        update_fields = []
        for field in BATCH_EDITABLE_FIELDS:
            if field in changes:
                setattr(batch, field, changes[field])
                update_fields.append(field)
        if update_fields:
            batch.save(update_fields=update_fields + ['updated_at'])
    return batch


def delete_batch(batch: Batch) -> int:
    """
    Delete a batch together with its enrollments.

    Returns:
        Number of enrollments removed.
    """
    with transaction.atomic():
        locked = capacity_service.lock_batch(batch.pk)
        dropped = locked.enrollments.count()
        locked.delete()
    logger.info(f'Batch {batch.pk} deleted with {dropped} enrollment(s)')
    return dropped


def available_batches():
    """Batches that start in the future and still have a free seat."""
    return (
        Batch.objects
        .select_related('course')
        .filter(start_date__gte=timezone.now(), current_enrolled__lt=F('max_seats'))
        .order_by('start_date')
    )
