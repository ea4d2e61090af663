"""
Seat bookkeeping for enrollments removed by a cascade.

``cancel_enrollment`` releases its own seat, and batch and course deletions
drop the batch row along with its enrollments. Every other deletion that
reaches an Enrollment (a user instance, a user queryset, the admin
"delete selected" action) gives the seat back here, in the deleting
transaction.
"""

import logging

from django.db.models import QuerySet
from django.db.models.signals import post_delete
from django.dispatch import receiver

from academy.models import Batch, Course, Enrollment
from academy.services import capacity_service

logger = logging.getLogger(__name__)

SELF_RELEASING_ORIGINS = (Enrollment, Batch, Course)


def _origin_model(origin):
    if isinstance(origin, QuerySet):
        return origin.model
    return type(origin)


@receiver(post_delete, sender=Enrollment)
def release_seat_on_cascade(sender, instance, origin=None, **kwargs):
    if issubclass(_origin_model(origin), SELF_RELEASING_ORIGINS):
        return
    capacity_service.release(instance.batch_id)
    logger.info(
        f'Released seat in batch {instance.batch_id} for enrollment {instance.pk} '
        f'(deleted via {_origin_model(origin).__name__})'
    )
