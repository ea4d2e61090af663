"""
Enrollment Service — create, confirm and cancel seat bookings.

Each write runs in one ``transaction.atomic()`` block that covers both the
enrollment row and the batch seat counter, so a failure at any step rolls
both back together.

Locking order is always: batch row, then enrollment row. Holding the batch
lock across the capacity check and the increment serializes bookings per
batch; bookings on different batches never wait on each other.
"""

import logging
from contextlib import contextmanager

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import InterfaceError, OperationalError, connection, transaction

from academy.exceptions import (
    CapacityExceededError,
    DuplicateEnrollmentError,
    ForbiddenError,
    InvalidStatusError,
    NotFoundError,
    StoreUnavailable,
)
from academy.models import Batch, Enrollment, EnrollmentStatus
from academy.services import capacity_service, ledger_service
from users.models import ADMIN_ROLES

logger = logging.getLogger(__name__)


# =============================================================================
# HELPERS
# =============================================================================

@contextmanager
def _store_errors(operation: str):
    """Re-raise database failures as the retryable ``StoreUnavailable``."""
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        logger.warning(f'{operation} aborted by store error: {exc}')
        raise StoreUnavailable() from exc


def _apply_lock_timeout():
    """Bound how long this transaction waits on a row lock (PostgreSQL)."""
    timeout_ms = getattr(settings, 'ENROLLMENT_LOCK_TIMEOUT_MS', 5000)
    if timeout_ms and connection.vendor == 'postgresql':
        with connection.cursor() as cursor:
            cursor.execute(
                "SELECT set_config('lock_timeout', %s, true)", [f'{int(timeout_ms)}ms'],
            )


def _hydrated(enrollment_id) -> Enrollment:
    return Enrollment.objects.select_related('batch__course', 'user').get(pk=enrollment_id)


# =============================================================================
# CREATE
# =============================================================================

def create_enrollment(user_id, batch_id) -> Enrollment:
    """
    Book one seat in a batch for a user.

    Raises:
        NotFoundError: if the batch does not exist.
        CapacityExceededError: if the batch has no free seat.
        DuplicateEnrollmentError: if the user already holds this batch.
        StoreUnavailable: on a transient database failure.
    """
    with _store_errors('create_enrollment'):
        with transaction.atomic():
            _apply_lock_timeout()
            batch = capacity_service.lock_batch(batch_id)

            if batch.current_enrolled >= batch.max_seats:
                logger.warning(f'Batch {batch.pk} full, rejected user {user_id}')
                raise CapacityExceededError()

            try:
                enrollment = ledger_service.insert_pending(user_id, batch.pk)
            except DuplicateEnrollmentError:
                logger.warning(f'User {user_id} already enrolled in batch {batch.pk}')
                raise

            # Unreachable while the batch lock is held
            if not capacity_service.try_reserve(batch.pk):
                logger.error(f'Seat reservation lost on locked batch {batch.pk}')
                raise CapacityExceededError()

        logger.info(
            f'Enrollment {enrollment.pk} created: user {user_id} -> batch {batch.pk} '
            f'({batch.current_enrolled + 1}/{batch.max_seats})'
        )
        return _hydrated(enrollment.pk)


# =============================================================================
# STATUS
# =============================================================================

def set_enrollment_status(enrollment_id, status: str) -> Enrollment:
    """
    Move an enrollment between PENDING and CONFIRMED.

    Seats are untouched. Setting the current status again is a no-op.

    Raises:
        InvalidStatusError: if ``status`` is not PENDING or CONFIRMED.
        NotFoundError: if the enrollment does not exist.
        StoreUnavailable: on a transient database failure.
    """
    if status not in EnrollmentStatus.values:
        raise InvalidStatusError()

    with _store_errors('set_enrollment_status'):
        enrollment = ledger_service.set_status(enrollment_id, status)
        logger.info(f'Enrollment {enrollment.pk} status -> {status}')
        return _hydrated(enrollment.pk)


# =============================================================================
# CANCEL
# =============================================================================

def cancel_enrollment(enrollment_id, requesting_user_id, requesting_role) -> dict:
    """
    Delete an enrollment and give its seat back.

    Allowed for administrators and for the enrollment's owner.

    Raises:
        NotFoundError: if the enrollment does not exist (or was cancelled
            concurrently).
        ForbiddenError: if the requester is neither owner nor admin.
        StoreUnavailable: on a transient database failure.
    """
    with _store_errors('cancel_enrollment'):
        enrollment = ledger_service.get(enrollment_id)

        if requesting_role not in ADMIN_ROLES and str(enrollment.user_id) != str(requesting_user_id):
            logger.warning(
                f'User {requesting_user_id} denied cancel of enrollment {enrollment.pk}'
            )
            raise ForbiddenError()

        with transaction.atomic():
            _apply_lock_timeout()
            capacity_service.lock_batch(enrollment.batch_id)
            removed = ledger_service.remove(enrollment.pk)
            capacity_service.release(removed.batch_id)

        logger.info(
            f'Enrollment {removed.pk} cancelled by {requesting_user_id} '
            f'(batch {removed.batch_id})'
        )
    return {'detail': 'Enrollment cancelled successfully.'}


# =============================================================================
# USER REMOVAL
# =============================================================================

def delete_users(user_ids) -> int:
    """
    Delete users together with their enrollments, releasing every seat.

    The batches those enrollments hold are locked (in primary-key order)
    before the cascade touches any enrollment row, so this follows the same
    batch-then-enrollment order as ``cancel_enrollment``. The seats
    themselves are released by ``academy.signals``.

    Returns:
        Number of users deleted.

    Raises:
        StoreUnavailable: on a transient database failure.
    """
    user_ids = list(user_ids)
    with _store_errors('delete_users'):
        with transaction.atomic():
            _apply_lock_timeout()
            held = Enrollment.objects.filter(user_id__in=user_ids).values('batch_id')
            locked = list(
                Batch.objects.select_for_update()
                .filter(pk__in=held)
                .order_by('pk')
                .values_list('pk', flat=True)
            )
            deleted, _ = get_user_model().objects.filter(pk__in=user_ids).delete()
        logger.info(f'Deleted {len(user_ids)} user(s), released seats in {len(locked)} batch(es)')
    return deleted


# =============================================================================
# READS
# =============================================================================

def list_enrollments_for_user(user_id):
    return (
        Enrollment.objects
        .filter(user_id=user_id)
        .select_related('batch__course', 'user')
        .order_by('-created_at')
    )


def list_enrollments_for_batch(batch_id):
    """
    Raises:
        NotFoundError: if the batch does not exist.
    """
    with _store_errors('list_enrollments_for_batch'):
        if not capacity_service.batch_exists(batch_id):
            raise NotFoundError('Batch not found.')
    return (
        Enrollment.objects
        .filter(batch_id=batch_id)
        .select_related('batch__course', 'user')
        .order_by('-created_at')
    )
