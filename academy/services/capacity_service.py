"""
Capacity Service — per-batch seat counters.

Every mutation is a single conditional UPDATE, so the check and the write
happen in one statement. Callers that need to read ``current_enrolled``
and act on it hold the row lock from ``lock_batch()`` for the whole
transaction.
"""

import logging

from django.db import transaction
from django.db.models import F

from academy.exceptions import CapacityError, CapacityUnderflowError, NotFoundError
from academy.models import Batch, Enrollment

logger = logging.getLogger(__name__)


def lock_batch(batch_id) -> Batch:
    """
    Load a batch with ``SELECT ... FOR UPDATE``.

    Must be called inside ``transaction.atomic()``; the lock is held
    until that transaction ends.

    Raises:
        NotFoundError: if the batch does not exist.
    """
    try:
        return Batch.objects.select_for_update().get(pk=batch_id)
    except Batch.DoesNotExist:
        raise NotFoundError('Batch not found.')


def try_reserve(batch_id) -> bool:
    """Take one seat if one is free. Returns False with no write when full."""
    updated = Batch.objects.filter(
        pk=batch_id, current_enrolled__lt=F('max_seats'),
    ).update(current_enrolled=F('current_enrolled') + 1)
    return updated == 1


def release(batch_id) -> None:
    """
    Give one seat back.

    Raises:
        NotFoundError: if the batch does not exist.
        CapacityUnderflowError: if the counter is already zero.
    """
    updated = Batch.objects.filter(
        pk=batch_id, current_enrolled__gt=0,
    ).update(current_enrolled=F('current_enrolled') - 1)
    if updated == 1:
        return

    if not batch_exists(batch_id):
        raise NotFoundError('Batch not found.')

    logger.error(f'Seat release on batch {batch_id} found current_enrolled=0')
    raise CapacityUnderflowError()


def set_max_seats(batch_id, max_seats: int) -> Batch:
    """
    Change a batch's capacity.

    Shrinking below the seats already taken is rejected rather than
    grandfathering the extra enrollments.

    Raises:
        NotFoundError: if the batch does not exist.
        CapacityError: if ``max_seats`` < 1 or < ``current_enrolled``.
    """
    if max_seats < 1:
        raise CapacityError('A batch needs at least one seat.')

    with transaction.atomic():
        batch = lock_batch(batch_id)
        if max_seats < batch.current_enrolled:
            raise CapacityError(
                f'Cannot set seats to {max_seats}: '
                f'{batch.current_enrolled} users are already enrolled.'
            )
        if batch.max_seats != max_seats:
            logger.info(f'Batch {batch.pk} seats {batch.max_seats} -> {max_seats}')
            batch.max_seats = max_seats
            batch.save(update_fields=['max_seats', 'updated_at'])
    return batch


def batch_exists(batch_id) -> bool:
    return Batch.objects.filter(pk=batch_id).exists()


def live_enrollment_count(batch_id) -> int:
    return Enrollment.objects.filter(batch_id=batch_id).count()


def reconcile(batch_id, fix: bool = False) -> tuple[int, int]:
    """
    Compare the stored counter with the enrollment rows.

    Returns:
        (stored, actual). With ``fix=True`` the stored counter is
        overwritten with ``actual`` under the batch lock.
    """
    with transaction.atomic():
        batch = lock_batch(batch_id)
        actual = live_enrollment_count(batch.pk)
        stored = batch.current_enrolled
        if fix and stored != actual:
            if actual > batch.max_seats:
                raise CapacityError(
                    f'Batch {batch.pk} holds {actual} enrollments for '
                    f'{batch.max_seats} seats; raise the capacity first.'
                )
            logger.warning(f'Repairing batch {batch.pk} seat count {stored} -> {actual}')
            batch.current_enrolled = actual
            batch.save(update_fields=['current_enrolled', 'updated_at'])
    return stored, actual
