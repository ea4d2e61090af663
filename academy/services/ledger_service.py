"""
Ledger Service — enrollment rows and (user, batch) uniqueness.

These functions do not touch seat counters; pairing them with the
capacity service is the job of ``enrollment_service``.
"""

from django.db import IntegrityError, transaction

from academy.exceptions import DuplicateEnrollmentError, NotFoundError
from academy.models import Enrollment, EnrollmentStatus


def get(enrollment_id, lock: bool = False) -> Enrollment:
    """
    Raises:
        NotFoundError: if the enrollment does not exist.
    """
    qs = Enrollment.objects.all()
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=enrollment_id)
    except Enrollment.DoesNotExist:
        raise NotFoundError('Enrollment not found.')


def find_by_user_and_batch(user_id, batch_id) -> Enrollment | None:
    return Enrollment.objects.filter(user_id=user_id, batch_id=batch_id).first()


def insert_pending(user_id, batch_id) -> Enrollment:
    """
    Create a PENDING enrollment.

    Raises:
        DuplicateEnrollmentError: if the user already holds this batch.
    """
    if find_by_user_and_batch(user_id, batch_id) is not None:
        raise DuplicateEnrollmentError()

    # Savepoint so a unique-constraint race leaves the outer transaction usable
    try:
        with transaction.atomic():
            return Enrollment.objects.create(
                user_id=user_id,
                batch_id=batch_id,
                status=EnrollmentStatus.PENDING,
            )
    except IntegrityError:
        if find_by_user_and_batch(user_id, batch_id) is not None:
            raise DuplicateEnrollmentError()
        raise


def set_status(enrollment_id, status: str) -> Enrollment:
    """
    Raises:
        NotFoundError: if the enrollment does not exist.
    """
    with transaction.atomic():
        enrollment = get(enrollment_id, lock=True)
        if enrollment.status != status:
            enrollment.status = status
            enrollment.save(update_fields=['status', 'updated_at'])
    return enrollment


def remove(enrollment_id) -> Enrollment:
    """
    Delete an enrollment row and return the deleted instance.

    Raises:
        NotFoundError: if the enrollment does not exist.
    """
    with transaction.atomic():
        enrollment = get(enrollment_id, lock=True)
        Enrollment.objects.filter(pk=enrollment.pk).delete()
    return enrollment
