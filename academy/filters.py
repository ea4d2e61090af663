"""
Academy Filters — django-filter filtersets for batches and enrollments.
"""

import django_filters

from academy.models import Batch, Enrollment, EnrollmentStatus


class BatchFilter(django_filters.FilterSet):
    course = django_filters.UUIDFilter(field_name='course_id')
    starts_after = django_filters.IsoDateTimeFilter(field_name='start_date', lookup_expr='gte')
    starts_before = django_filters.IsoDateTimeFilter(field_name='start_date', lookup_expr='lte')

    class Meta:
        model = Batch
        fields = ['course']


class EnrollmentFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=EnrollmentStatus.choices)

    class Meta:
        model = Enrollment
        fields = ['status']
